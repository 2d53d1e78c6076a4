"""Fallos tipados del libro de stock.

Cada error lleva un ``code`` estable (el mismo que ve el cliente en el JSON)
y el ``status_code`` HTTP que le corresponde; el mapeo a respuesta lo hace
el handler registrado en ``inventario.main``.
"""

from __future__ import annotations

from typing import Optional


class InventoryError(Exception):
    code = "inventory_error"
    status_code = 400
    retryable = False
    default_message = "Operación de inventario rechazada"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ProductNotFound(InventoryError):
    code = "product_not_found"
    status_code = 404
    default_message = "Product not found"


class InvalidArea(InventoryError):
    code = "invalid_area"
    default_message = "area debe ser 'bodega' o 'surtido'"


class InvalidType(InventoryError):
    code = "invalid_type"
    default_message = "type debe ser 'ingreso', 'salida' o 'ajuste'"


class InvalidQuantity(InventoryError):
    code = "invalid_quantity"
    default_message = "quantity debe ser un número finito > 0"


class SameArea(InventoryError):
    code = "same_area"
    default_message = "fromArea y toArea deben ser distintas"


class IngressToStagingForbidden(InventoryError):
    code = "ingreso_to_surtido_forbidden"
    default_message = "Use /inventory/transfer para ingresar a surtido desde bodega"


class InsufficientStock(InventoryError):
    code = "insufficient_stock"
    default_message = "Insufficient stock"


class NegativeStock(InventoryError):
    code = "stock_negative"
    default_message = "El movimiento dejaría el stock en negativo"


class StorageError(InventoryError):
    code = "storage_error"
    status_code = 500
    retryable = True
    default_message = "Error de almacenamiento; la operación no se aplicó"


class SkuConflict(InventoryError):
    code = "sku_exists"
    status_code = 409
    default_message = "SKU already exists"


class FutureTimestamp(InventoryError):
    code = "created_at_in_future"
    default_message = "created_at no puede ser posterior al momento de la importación"
