from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from inventario.db import get_session
from inventario.services.import_service import ImportService
from inventario.services.inventory_service import InventoryService
from inventario.services.product_service import ProductService
from inventario.services.reconciliation_service import (
    AreaMigrationService,
    ReconciliationService,
)


def session_dep() -> Generator[Session, None, None]:
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def inventory_service_dep(db: Session = Depends(session_dep)) -> InventoryService:
    return InventoryService(db)


def product_service_dep(db: Session = Depends(session_dep)) -> ProductService:
    return ProductService(db)


def reconciliation_service_dep(db: Session = Depends(session_dep)) -> ReconciliationService:
    return ReconciliationService(db)


def area_migration_service_dep(db: Session = Depends(session_dep)) -> AreaMigrationService:
    return AreaMigrationService(db)


def import_service_dep(db: Session = Depends(session_dep)) -> ImportService:
    return ImportService(db)
