from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventario.errors import InventoryError, SkuConflict
from inventario.inventory_config import InventoryConfig, load_inventory_config
from inventario.models import Product
from inventario.repositories.product_repository import ProductRepository
from inventario.schemas import ProductCreate, ProductStockRead
from inventario.utils import SkuGenerationError, generate_sku

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, db: Session, config: Optional[InventoryConfig] = None):
        self._db = db
        self._products = ProductRepository(db)
        self._config = config or load_inventory_config()

    @property
    def db(self) -> Session:
        return self._db

    def _generate_sku(self) -> str:
        cfg = self._config.products
        try:
            return generate_sku(
                self._products.sku_exists,
                prefix=cfg.sku_prefix,
                width=cfg.sku_width,
                start=self._products.count_with_prefix(cfg.sku_prefix) + 1,
                max_attempts=cfg.sku_max_attempts,
            )
        except SkuGenerationError as e:
            logger.warning("sku generation exhausted: %s", e)
            raise SkuConflict("No se pudo generar un SKU libre") from e

    def create(self, payload: ProductCreate) -> Product:
        if not payload.name.strip():
            raise InventoryError("name must not be empty")

        sku = payload.sku.strip() if payload.sku else ""
        if not sku:
            sku = self._generate_sku()

        product = Product(
            sku=sku,
            name=payload.name.strip(),
            category=payload.category.strip() if payload.category and payload.category.strip() else None,
            unit=payload.unit.strip() if payload.unit and payload.unit.strip() else None,
        )
        self._products.add(product)
        try:
            self._db.commit()
        except IntegrityError as e:
            self._db.rollback()
            raise SkuConflict() from e
        self._db.refresh(product)
        logger.info("product created sku=%s", product.sku)
        return product

    def list_with_stock(self, query: str = "", limit: Optional[int] = None) -> list[ProductStockRead]:
        return [
            ProductStockRead(
                id=pid,
                sku=sku,
                name=name,
                category=category,
                unit=unit,
                stock_bodega=float(bodega or 0),
                stock_surtido=float(surtido or 0),
                stock_total=float(bodega or 0) + float(surtido or 0),
            )
            for pid, sku, name, category, unit, bodega, surtido in self._products.list_with_stock(
                query=query, limit=limit or self._config.stock.list_limit
            )
        ]
