from __future__ import annotations

from typing import Optional

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.orm import Session

from inventario.models import (
    AREAS,
    MOVEMENT_AJUSTE,
    MOVEMENT_INGRESO,
    MOVEMENT_SALIDA,
    InventoryMovement,
    InventoryStock,
    Product,
    User,
)


class InventoryRepository:
    def __init__(self, db: Session):
        self._db = db

    def add_movement(self, movement: InventoryMovement) -> None:
        self._db.add(movement)

    def stock_entry(
        self, product_id: int, area: str, for_update: bool = False
    ) -> Optional[InventoryStock]:
        stmt = select(InventoryStock).where(
            InventoryStock.product_id == product_id,
            InventoryStock.area == area,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._db.scalar(stmt)

    def stock_by_area(self, product_id: int) -> dict[str, float]:
        rows = self._db.execute(
            select(InventoryStock.area, InventoryStock.quantity).where(
                InventoryStock.product_id == product_id
            )
        ).all()
        out = {area: 0.0 for area in AREAS}
        for area, qty in rows:
            out[area] = float(qty or 0)
        return out

    def stock_list(self, area: Optional[str] = None, query: str = "", limit: int = 500) -> list[tuple]:
        q = (query or "").strip()
        stmt = (
            select(
                Product.id,
                Product.sku,
                Product.name,
                InventoryStock.area,
                InventoryStock.quantity,
            )
            .select_from(InventoryStock)
            .join(Product, Product.id == InventoryStock.product_id)
        )
        if area:
            stmt = stmt.where(InventoryStock.area == area)
        if q:
            like = f"%{q.lower()}%"
            stmt = stmt.where(
                (func.lower(Product.sku).like(like)) | (func.lower(Product.name).like(like))
            )
        stmt = stmt.order_by(Product.name, InventoryStock.area).limit(limit)
        return list(self._db.execute(stmt).all())

    def totals_by_area(self) -> dict[str, float]:
        rows = self._db.execute(
            select(InventoryStock.area, func.coalesce(func.sum(InventoryStock.quantity), 0)).group_by(
                InventoryStock.area
            )
        ).all()
        out = {area: 0.0 for area in AREAS}
        for area, qty in rows:
            out[area] = float(qty or 0)
        return out

    def low_stock(self, threshold: float, limit: int = 20) -> list[tuple]:
        return list(
            self._db.execute(
                select(Product.id, Product.sku, Product.name, InventoryStock.area, InventoryStock.quantity)
                .select_from(InventoryStock)
                .join(Product, Product.id == InventoryStock.product_id)
                .where(InventoryStock.quantity <= threshold)
                .order_by(InventoryStock.quantity, Product.name)
                .limit(limit)
            ).all()
        )

    def movement_history(self, product_id: Optional[int] = None, limit: int = 100) -> list[tuple]:
        stmt = (
            select(
                InventoryMovement.id,
                InventoryMovement.created_at,
                Product.sku,
                Product.name,
                InventoryMovement.area,
                InventoryMovement.type,
                InventoryMovement.quantity,
                InventoryMovement.reason,
                InventoryMovement.user_id,
                User.username,
            )
            .select_from(InventoryMovement)
            .join(Product, Product.id == InventoryMovement.product_id)
            .outerjoin(User, User.id == InventoryMovement.user_id)
            .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        )
        if product_id is not None:
            stmt = stmt.where(InventoryMovement.product_id == product_id)
        return list(self._db.execute(stmt.limit(limit)).all())

    def movements_for_pair(self, product_id: int, area: str) -> list[InventoryMovement]:
        return list(
            self._db.scalars(
                select(InventoryMovement)
                .where(
                    InventoryMovement.product_id == product_id,
                    InventoryMovement.area == area,
                )
                .order_by(InventoryMovement.created_at, InventoryMovement.id)
            )
        )

    def movement_pairs(self) -> list[tuple[int, str]]:
        rows = self._db.execute(
            select(InventoryMovement.product_id, InventoryMovement.area)
            .distinct()
            .order_by(InventoryMovement.product_id, InventoryMovement.area)
        ).all()
        return [(int(pid), str(area)) for pid, area in rows]

    def reconciliation_rows(self) -> list[tuple[int, str, float, float]]:
        """(product_id, area, base, delta) por cada par presente en el historial.

        ``base`` es la cantidad del último ajuste (0 si no hay) y ``delta`` la
        suma de ingresos menos salidas posteriores a ese ajuste, con el orden
        total (created_at, id) que usa también el replay completo.
        """
        ranked = (
            select(
                InventoryMovement.product_id.label("product_id"),
                InventoryMovement.area.label("area"),
                InventoryMovement.id.label("base_id"),
                InventoryMovement.created_at.label("base_time"),
                InventoryMovement.quantity.label("base_qty"),
                func.row_number()
                .over(
                    partition_by=(InventoryMovement.product_id, InventoryMovement.area),
                    order_by=(InventoryMovement.created_at.desc(), InventoryMovement.id.desc()),
                )
                .label("rn"),
            )
            .where(InventoryMovement.type == MOVEMENT_AJUSTE)
            .subquery()
        )
        last_ajuste = select(ranked).where(ranked.c.rn == 1).subquery()

        mv = InventoryMovement
        signed = case(
            (mv.type == MOVEMENT_INGRESO, mv.quantity),
            (mv.type == MOVEMENT_SALIDA, -mv.quantity),
            else_=0,
        )
        after_base = or_(
            last_ajuste.c.base_id.is_(None),
            mv.created_at > last_ajuste.c.base_time,
            and_(mv.created_at == last_ajuste.c.base_time, mv.id > last_ajuste.c.base_id),
        )

        rows = self._db.execute(
            select(
                mv.product_id,
                mv.area,
                func.coalesce(func.max(last_ajuste.c.base_qty), 0).label("base"),
                func.coalesce(func.sum(case((after_base, signed), else_=0)), 0).label("delta"),
            )
            .select_from(mv)
            .outerjoin(
                last_ajuste,
                and_(
                    last_ajuste.c.product_id == mv.product_id,
                    last_ajuste.c.area == mv.area,
                ),
            )
            .group_by(mv.product_id, mv.area)
            .order_by(mv.product_id, mv.area)
        ).all()
        return [(int(pid), str(area), float(base or 0), float(delta or 0)) for pid, area, base, delta in rows]

    def area_entries(self, area: str) -> list[InventoryStock]:
        return list(
            self._db.scalars(
                select(InventoryStock)
                .where(InventoryStock.area == area)
                .order_by(InventoryStock.product_id)
                .with_for_update()
            )
        )

    def all_entries(self) -> list[InventoryStock]:
        return list(
            self._db.scalars(
                select(InventoryStock).order_by(InventoryStock.product_id, InventoryStock.area)
            )
        )

    def delete_area(self, area: str) -> int:
        result = self._db.execute(delete(InventoryStock).where(InventoryStock.area == area))
        return int(result.rowcount or 0)
