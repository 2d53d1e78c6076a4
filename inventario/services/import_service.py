from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventario.errors import FutureTimestamp, InvalidQuantity, InventoryError, StorageError
from inventario.inventory_config import InventoryConfig, load_inventory_config
from inventario.models import MOVEMENT_AJUSTE, InventoryMovement, Product
from inventario.repositories.inventory_repository import InventoryRepository
from inventario.repositories.product_repository import ProductRepository
from inventario.schemas import ImportRequest, ImportResult
from inventario.services.inventory_service import (
    InventoryService,
    as_utc,
    round_qty,
    utcnow,
    validate_area,
    validate_type,
)
from inventario.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

IMPORT_REASON = "import"


def _non_negative(value: float) -> float:
    qty = float(value)
    if not math.isfinite(qty) or qty < 0:
        raise InvalidQuantity("quantity debe ser un número finito >= 0")
    return qty


class ImportService:
    """Carga inicial de productos, historial y existencias.

    Los movimientos importados se agregan tal cual al historial. Cada fila de
    existencias se registra como un ajuste posterior a ese historial, y al
    final la proyección se recalcula desde el log dentro de la misma
    transacción, de modo que sigue siendo derivable por replay.
    """

    def __init__(self, db: Session, config: Optional[InventoryConfig] = None):
        self._db = db
        self._config = config or load_inventory_config()
        self._products = ProductRepository(db)
        self._inventory = InventoryRepository(db)
        self._movements = InventoryService(db, config=self._config)
        self._reconciliation = ReconciliationService(db)

    @property
    def db(self) -> Session:
        return self._db

    def _upsert_products(self, payload: ImportRequest) -> None:
        batch: dict[str, Product] = {}
        for p in payload.products:
            sku = p.sku.strip()
            if not sku:
                continue
            product = batch.get(sku) or self._products.get_by_sku(sku)
            if product is None:
                product = Product(sku=sku, name=p.name.strip() or sku)
                self._products.add(product)
            else:
                product.name = p.name.strip() or product.name
            batch[sku] = product
            product.category = (p.category or "").strip() or None
            product.unit = (p.unit or "").strip() or None
        self._db.flush()

    def import_data(self, payload: ImportRequest, actor_id: Optional[int] = None) -> ImportResult:
        skipped = 0
        movements = 0
        stock_rows = 0
        try:
            self._upsert_products(payload)
            skus = [m.sku for m in payload.inventory_movements] + [s.sku for s in payload.inventory_stock]
            ids = self._products.ids_by_sku(skus)

            now = utcnow()
            latest: Optional[datetime] = None
            for m in payload.inventory_movements:
                pid = ids.get(m.sku.strip())
                if pid is None:
                    skipped += 1
                    continue
                created_at = as_utc(m.created_at) or now
                if created_at > now:
                    raise FutureTimestamp(f"created_at {m.created_at.isoformat()} posterior a la importación")
                latest = created_at if latest is None or created_at > latest else latest
                self._inventory.add_movement(
                    InventoryMovement(
                        product_id=pid,
                        area=validate_area(m.area),
                        type=validate_type(m.type),
                        quantity=round_qty(_non_negative(m.quantity)),
                        reason=(m.reason or "").strip() or None,
                        user_id=actor_id,
                        created_at=created_at,
                    )
                )
                movements += 1
            self._db.flush()

            snapshot_at = now
            if latest is not None and latest >= now:
                snapshot_at = latest + timedelta(microseconds=1)
            for s in payload.inventory_stock:
                pid = ids.get(s.sku.strip())
                if pid is None:
                    skipped += 1
                    continue
                self._movements.apply_movement(
                    pid,
                    validate_area(s.area),
                    MOVEMENT_AJUSTE,
                    _non_negative(s.quantity),
                    IMPORT_REASON,
                    actor_id,
                    created_at=snapshot_at,
                )
                stock_rows += 1

            updated = self._reconciliation.recompute()
            self._db.commit()
        except InventoryError as e:
            self._db.rollback()
            logger.info("import rejected: %s", e.code)
            raise
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("import failed")
            raise StorageError() from e

        logger.info(
            "import done products=%s movements=%s stock=%s skipped=%s",
            len(payload.products), movements, stock_rows, skipped,
        )
        return ImportResult(
            products=len(payload.products),
            stock=stock_rows,
            movements=movements,
            skipped=skipped,
            updated=updated,
        )
