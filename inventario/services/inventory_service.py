from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventario.errors import (
    IngressToStagingForbidden,
    InsufficientStock,
    InvalidArea,
    InvalidQuantity,
    InvalidType,
    InventoryError,
    NegativeStock,
    ProductNotFound,
    SameArea,
    StorageError,
)
from inventario.inventory_config import InventoryConfig, load_inventory_config
from inventario.models import (
    AREA_BODEGA,
    AREA_SURTIDO,
    AREAS,
    MOVEMENT_AJUSTE,
    MOVEMENT_INGRESO,
    MOVEMENT_SALIDA,
    MOVEMENT_TYPES,
    InventoryMovement,
    InventoryStock,
    Product,
)
from inventario.repositories.inventory_repository import InventoryRepository
from inventario.repositories.product_repository import ProductRepository
from inventario.schemas import (
    ActivityRead,
    AreaTotals,
    InventorySummary,
    MovementRead,
    MovementResult,
    ProductAreasStock,
    StockRead,
    TransferResult,
)

logger = logging.getLogger(__name__)

QTY_DECIMALS = 4


def round_qty(value: float) -> float:
    return round(float(value), QTY_DECIMALS)


def next_quantity(current: float, movement_type: str, quantity: float) -> float:
    """Aplica un movimiento sobre una cantidad: ingreso suma, salida resta, ajuste fija."""
    if movement_type == MOVEMENT_INGRESO:
        return round_qty(current + quantity)
    if movement_type == MOVEMENT_SALIDA:
        return round_qty(current - quantity)
    if movement_type == MOVEMENT_AJUSTE:
        return round_qty(quantity)
    raise InvalidType()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_area(area: str) -> str:
    a = (area or "").strip().lower()
    if a not in AREAS:
        raise InvalidArea()
    return a


def validate_type(movement_type: str) -> str:
    t = (movement_type or "").strip().lower()
    if t not in MOVEMENT_TYPES:
        raise InvalidType()
    return t


def validate_quantity(quantity: float) -> float:
    try:
        qty = float(quantity)
    except (TypeError, ValueError) as e:
        raise InvalidQuantity() from e
    if not math.isfinite(qty) or qty <= 0:
        raise InvalidQuantity()
    return qty


class InventoryService:
    def __init__(self, db: Session, config: Optional[InventoryConfig] = None):
        self._db = db
        self._products = ProductRepository(db)
        self._inventory = InventoryRepository(db)
        self._config = config or load_inventory_config()

    @property
    def db(self) -> Session:
        return self._db

    @property
    def config(self) -> InventoryConfig:
        return self._config

    def _get_product(self, sku: str, for_update: bool = False) -> Product:
        product = self._products.get_by_sku(sku or "", for_update=for_update)
        if product is None:
            raise ProductNotFound()
        return product

    def _area_label(self, area: str) -> str:
        return self._config.areas.labels.get(area, area)

    def find_product_by_sku(self, sku: str) -> Optional[int]:
        product = self._products.get_by_sku(sku or "")
        return product.id if product is not None else None

    def apply_movement(
        self,
        product_id: int,
        area: str,
        movement_type: str,
        quantity: float,
        reason: Optional[str],
        actor_id: Optional[int],
        created_at: Optional[datetime] = None,
    ) -> tuple[InventoryMovement, float]:
        """Registra un movimiento y actualiza la proyección sin hacer commit.

        El llamador es dueño de la transacción. Lanza ``NegativeStock`` antes
        de escribir nada si la cantidad resultante sería negativa.
        """
        entry = self._inventory.stock_entry(product_id, area, for_update=True)
        current = float(entry.quantity or 0) if entry is not None else 0.0
        new_qty = next_quantity(current, movement_type, quantity)
        if new_qty < 0:
            raise NegativeStock()

        movement = InventoryMovement(
            product_id=product_id,
            area=area,
            type=movement_type,
            quantity=round_qty(quantity),
            reason=(reason or "").strip() or None,
            user_id=actor_id,
            created_at=created_at or utcnow(),
        )
        self._inventory.add_movement(movement)

        if entry is None:
            self._db.add(InventoryStock(product_id=product_id, area=area, quantity=new_qty))
        else:
            entry.quantity = new_qty
        self._db.flush()
        return movement, new_qty

    def record_movement(
        self,
        sku: str,
        area: str,
        movement_type: str,
        quantity: float,
        reason: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> MovementResult:
        area = validate_area(area)
        movement_type = validate_type(movement_type)
        qty = validate_quantity(quantity)
        if area == AREA_SURTIDO and movement_type == MOVEMENT_INGRESO:
            raise IngressToStagingForbidden()

        try:
            product = self._get_product(sku, for_update=True)
            movement, stock_after = self.apply_movement(
                product.id, area, movement_type, qty, reason, actor_id
            )
            self._db.commit()
        except InventoryError as e:
            self._db.rollback()
            logger.info("movement rejected sku=%s area=%s type=%s qty=%s: %s", sku, area, movement_type, qty, e.code)
            raise
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("movement failed sku=%s area=%s type=%s", sku, area, movement_type)
            raise StorageError() from e

        self._db.refresh(movement)
        logger.info(
            "movement id=%s sku=%s area=%s type=%s qty=%s stock=%s",
            movement.id, product.sku, area, movement_type, qty, stock_after,
        )
        return MovementResult(stock=stock_after, movement=MovementRead.model_validate(movement))

    def transfer(
        self,
        sku: str,
        from_area: str,
        to_area: str,
        quantity: float,
        reason: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> TransferResult:
        if (from_area or "").strip().lower() == (to_area or "").strip().lower():
            raise SameArea()
        from_area = validate_area(from_area)
        to_area = validate_area(to_area)
        qty = validate_quantity(quantity)
        reason = (reason or "").strip() or self._config.movements.transfer_reason

        try:
            product = self._get_product(sku, for_update=True)
            available = self._inventory.stock_entry(product.id, from_area, for_update=True)
            if (float(available.quantity or 0) if available is not None else 0.0) < qty:
                raise InsufficientStock()

            now = utcnow()
            _out, stock_from = self.apply_movement(
                product.id, from_area, MOVEMENT_SALIDA, qty, reason, actor_id, created_at=now
            )
            _in, stock_to = self.apply_movement(
                product.id, to_area, MOVEMENT_INGRESO, qty, reason, actor_id, created_at=now
            )
            self._db.commit()
        except InventoryError as e:
            self._db.rollback()
            logger.info("transfer rejected sku=%s %s->%s qty=%s: %s", sku, from_area, to_area, qty, e.code)
            raise
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("transfer failed sku=%s %s->%s", sku, from_area, to_area)
            raise StorageError() from e

        logger.info(
            "transfer sku=%s %s->%s qty=%s stock_from=%s stock_to=%s",
            product.sku, from_area, to_area, qty, stock_from, stock_to,
        )
        return TransferResult(
            sku=product.sku,
            from_area=from_area,
            to_area=to_area,
            quantity=qty,
            stock_from=stock_from,
            stock_to=stock_to,
        )

    def stock(self, sku: str) -> ProductAreasStock:
        product = self._get_product(sku)
        by_area = self._inventory.stock_by_area(product.id)
        bodega = by_area.get(AREA_BODEGA, 0.0)
        surtido = by_area.get(AREA_SURTIDO, 0.0)
        return ProductAreasStock(
            sku=product.sku,
            name=product.name,
            stock_bodega=bodega,
            stock_surtido=surtido,
            stock_total=round_qty(bodega + surtido),
        )

    def stock_list(self, area: Optional[str] = None, query: str = "") -> list[StockRead]:
        if area:
            area = validate_area(area)
        rows = self._inventory.stock_list(area=area, query=query, limit=self._config.stock.list_limit)
        return [
            StockRead(
                product_id=pid,
                sku=sku,
                name=name,
                area=row_area,
                area_label=self._area_label(row_area),
                quantity=float(qty or 0),
            )
            for pid, sku, name, row_area, qty in rows
        ]

    def totals(self) -> AreaTotals:
        by_area = self._inventory.totals_by_area()
        return AreaTotals(
            stock_bodega_total=by_area.get(AREA_BODEGA, 0.0),
            stock_surtido_total=by_area.get(AREA_SURTIDO, 0.0),
        )

    def _activity(self, rows: list[tuple]) -> list[ActivityRead]:
        return [
            ActivityRead(
                id=mid,
                created_at=created_at,
                sku=sku,
                name=name,
                area=area,
                type=mtype,
                quantity=float(qty or 0),
                reason=reason,
                user_id=user_id,
                username=username,
            )
            for mid, created_at, sku, name, area, mtype, qty, reason, user_id, username in rows
        ]

    def activity(self, sku: str) -> list[ActivityRead]:
        product = self._get_product(sku)
        return self._activity(
            self._inventory.movement_history(product_id=product.id, limit=self._config.stock.activity_limit)
        )

    def summary(self) -> InventorySummary:
        limit = self._config.stock.summary_limit
        low = [
            StockRead(
                product_id=pid,
                sku=sku,
                name=name,
                area=area,
                area_label=self._area_label(area),
                quantity=float(qty or 0),
            )
            for pid, sku, name, area, qty in self._inventory.low_stock(
                threshold=self._config.stock.low_stock_threshold, limit=limit
            )
        ]
        return InventorySummary(
            low_stock=low,
            last_movements=self._activity(self._inventory.movement_history(limit=limit)),
        )
