from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from inventario.models import AREA_BODEGA, AREA_SURTIDO, InventoryStock, Product


class ProductRepository:
    def __init__(self, db: Session):
        self._db = db

    def get_by_sku(self, sku: str, for_update: bool = False) -> Optional[Product]:
        stmt = select(Product).where(Product.sku == sku.strip())
        if for_update:
            stmt = stmt.with_for_update()
        return self._db.scalar(stmt)

    def sku_exists(self, sku: str) -> bool:
        return self._db.scalar(select(Product.id).where(Product.sku == sku)) is not None

    def count_with_prefix(self, prefix: str) -> int:
        total = self._db.scalar(select(func.count(Product.id)).where(Product.sku.like(f"{prefix}%")))
        return int(total or 0)

    def ids_by_sku(self, skus: Iterable[str]) -> dict[str, int]:
        wanted = {s.strip() for s in skus if s and s.strip()}
        if not wanted:
            return {}
        rows = self._db.execute(select(Product.sku, Product.id).where(Product.sku.in_(wanted))).all()
        return {sku: int(pid) for sku, pid in rows}

    def add(self, product: Product) -> None:
        self._db.add(product)

    def list_with_stock(self, query: str = "", limit: int = 200) -> list[tuple]:
        st = (
            select(
                InventoryStock.product_id.label("product_id"),
                func.sum(
                    case((InventoryStock.area == AREA_BODEGA, InventoryStock.quantity), else_=0)
                ).label("stock_bodega"),
                func.sum(
                    case((InventoryStock.area == AREA_SURTIDO, InventoryStock.quantity), else_=0)
                ).label("stock_surtido"),
            )
            .group_by(InventoryStock.product_id)
            .subquery()
        )
        stmt = (
            select(
                Product.id,
                Product.sku,
                Product.name,
                Product.category,
                Product.unit,
                func.coalesce(st.c.stock_bodega, 0),
                func.coalesce(st.c.stock_surtido, 0),
            )
            .select_from(Product)
            .outerjoin(st, st.c.product_id == Product.id)
        )
        q = (query or "").strip()
        if q:
            like = f"%{q.lower()}%"
            stmt = stmt.where(
                (func.lower(Product.sku).like(like)) | (func.lower(Product.name).like(like))
            )
        stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc()).limit(limit)
        return list(self._db.execute(stmt).all())
