from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventario.errors import InventoryError, StorageError
from inventario.inventory_config import InventoryConfig, load_inventory_config
from inventario.models import (
    AREA_BODEGA,
    AREA_SURTIDO,
    MOVEMENT_AJUSTE,
    MOVEMENT_INGRESO,
    MOVEMENT_SALIDA,
    InventoryStock,
    Product,
)
from inventario.repositories.inventory_repository import InventoryRepository
from inventario.schemas import DriftRead, MigrationResult, RebuildResult
from inventario.services.inventory_service import (
    InventoryService,
    next_quantity,
    round_qty,
    utcnow,
)

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Reconstrucción de la proyección de stock a partir del historial.

    ``rebuild_stock`` toma como base el último ajuste de cada par
    (producto, área) y suma ingresos menos salidas posteriores; da lo mismo
    que ``replay_stock`` recorriendo todo el historial, con piso en cero.
    """

    def __init__(self, db: Session):
        self._db = db
        self._inventory = InventoryRepository(db)

    @property
    def db(self) -> Session:
        return self._db

    def recompute(self) -> int:
        """Reescribe cada StockEntry derivable del historial; no hace commit."""
        entries = {(e.product_id, e.area): e for e in self._inventory.all_entries()}
        rows = self._inventory.reconciliation_rows()
        for product_id, area, base, delta in rows:
            stock = max(0.0, round_qty(base + delta))
            entry = entries.get((product_id, area))
            if entry is None:
                self._db.add(InventoryStock(product_id=product_id, area=area, quantity=stock))
            else:
                entry.quantity = stock
        self._db.flush()
        return len(rows)

    def rebuild_stock(self) -> RebuildResult:
        try:
            updated = self.recompute()
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("stock rebuild failed")
            raise StorageError() from e
        logger.info("stock rebuilt from movements: %s pairs", updated)
        return RebuildResult(updated=updated)

    def replay_stock(self, product_id: int, area: str, floor: bool = True) -> float:
        qty = 0.0
        for mv in self._inventory.movements_for_pair(product_id, area):
            qty = next_quantity(qty, mv.type, float(mv.quantity or 0))
        return max(0.0, qty) if floor else qty

    def drift_report(self) -> list[DriftRead]:
        projected = {(e.product_id, e.area): float(e.quantity or 0) for e in self._inventory.all_entries()}
        pairs = set(projected) | set(self._inventory.movement_pairs())
        if not pairs:
            return []

        skus = dict(
            self._db.execute(
                select(Product.id, Product.sku).where(Product.id.in_({pid for pid, _ in pairs}))
            ).all()
        )
        out: list[DriftRead] = []
        for product_id, area in sorted(pairs):
            replayed = self.replay_stock(product_id, area)
            current = projected.get((product_id, area), 0.0)
            if round_qty(current) != round_qty(replayed):
                out.append(
                    DriftRead(
                        product_id=product_id,
                        sku=skus.get(product_id, ""),
                        area=area,
                        projected=current,
                        replayed=replayed,
                    )
                )
        return out


class AreaMigrationService:
    """Vacía surtido en bodega dejando un par de movimientos por producto."""

    def __init__(self, db: Session, config: Optional[InventoryConfig] = None):
        self._db = db
        self._config = config or load_inventory_config()
        self._inventory = InventoryRepository(db)
        self._movements = InventoryService(db, config=self._config)
        self._reconciliation = ReconciliationService(db)

    @property
    def db(self) -> Session:
        return self._db

    def move_all_to_bodega(self, actor_id: Optional[int] = None) -> MigrationResult:
        reason = self._config.movements.migration_reason
        moved_products = 0
        moved_qty = 0.0
        try:
            now = utcnow()
            for entry in self._inventory.area_entries(AREA_SURTIDO):
                qty = round_qty(float(entry.quantity or 0))
                # el historial de surtido debe reproducir la fila antes de vaciarla
                replayed = self._reconciliation.replay_stock(entry.product_id, AREA_SURTIDO, floor=False)
                if round_qty(replayed) != qty:
                    self._movements.apply_movement(
                        entry.product_id, AREA_SURTIDO, MOVEMENT_AJUSTE, qty, reason, actor_id, created_at=now
                    )
                if qty <= 0:
                    continue
                self._movements.apply_movement(
                    entry.product_id, AREA_SURTIDO, MOVEMENT_SALIDA, qty, reason, actor_id, created_at=now
                )
                self._movements.apply_movement(
                    entry.product_id, AREA_BODEGA, MOVEMENT_INGRESO, qty, reason, actor_id, created_at=now
                )
                moved_products += 1
                moved_qty += qty
            self._inventory.delete_area(AREA_SURTIDO)
            self._db.commit()
        except InventoryError:
            self._db.rollback()
            raise
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("move_all_to_bodega failed")
            raise StorageError() from e

        logger.info("moved surtido to bodega: products=%s qty=%s", moved_products, moved_qty)
        return MigrationResult(products=moved_products, quantity=round_qty(moved_qty))
