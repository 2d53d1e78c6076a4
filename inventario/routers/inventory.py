from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from inventario.audit import log_event
from inventario.deps import (
    area_migration_service_dep,
    import_service_dep,
    inventory_service_dep,
    reconciliation_service_dep,
)
from inventario.models import ROLE_BODEGA, ROLE_DESCARGUE, ROLE_MANAGER, ROLE_SURTIDO, User
from inventario.schemas import (
    AreaTotals,
    DriftRead,
    ImportRequest,
    ImportResult,
    InventorySummary,
    MigrationResult,
    MovementCreate,
    MovementResult,
    ProductAreasStock,
    RebuildResult,
    StockRead,
    TransferCreate,
    TransferResult,
)
from inventario.security import require_roles
from inventario.services.import_service import ImportService
from inventario.services.inventory_service import InventoryService
from inventario.services.reconciliation_service import (
    AreaMigrationService,
    ReconciliationService,
)

router = APIRouter(prefix="/inventory", tags=["inventory"])

_stock_readers = require_roles(ROLE_MANAGER, ROLE_BODEGA, ROLE_SURTIDO)
_movers = require_roles(ROLE_MANAGER, ROLE_BODEGA, ROLE_SURTIDO, ROLE_DESCARGUE)
_transferers = require_roles(ROLE_MANAGER, ROLE_BODEGA, ROLE_SURTIDO)
_managers = require_roles(ROLE_MANAGER)


@router.get("/stock", response_model=list[StockRead])
def list_stock(
    area: Optional[str] = None,
    q: Optional[str] = None,
    user: User = Depends(_stock_readers),
    service: InventoryService = Depends(inventory_service_dep),
) -> list[StockRead]:
    return service.stock_list(area=area, query=q or "")


@router.get("/stock/drift", response_model=list[DriftRead])
def stock_drift(
    user: User = Depends(_managers),
    service: ReconciliationService = Depends(reconciliation_service_dep),
) -> list[DriftRead]:
    return service.drift_report()


@router.get("/stock/{sku}", response_model=ProductAreasStock)
def get_stock(
    sku: str,
    user: User = Depends(_stock_readers),
    service: InventoryService = Depends(inventory_service_dep),
) -> ProductAreasStock:
    return service.stock(sku)


@router.post("/movement", response_model=MovementResult)
def create_movement(
    payload: MovementCreate,
    user: User = Depends(_movers),
    service: InventoryService = Depends(inventory_service_dep),
) -> MovementResult:
    result = service.record_movement(
        sku=payload.sku,
        area=payload.area,
        movement_type=payload.type,
        quantity=payload.quantity,
        reason=payload.reason,
        actor_id=user.id,
    )
    log_event(
        service.db,
        user,
        action="movement_create",
        entity_type="movement",
        entity_id=result.movement.id,
        detail={
            "sku": payload.sku,
            "area": result.movement.area,
            "type": result.movement.type,
            "quantity": payload.quantity,
            "stock": result.stock,
        },
    )
    return result


@router.post("/transfer", response_model=TransferResult)
def create_transfer(
    payload: TransferCreate,
    user: User = Depends(_transferers),
    service: InventoryService = Depends(inventory_service_dep),
) -> TransferResult:
    result = service.transfer(
        sku=payload.sku,
        from_area=payload.from_area,
        to_area=payload.to_area,
        quantity=payload.quantity,
        reason=payload.reason,
        actor_id=user.id,
    )
    log_event(
        service.db,
        user,
        action="transfer_create",
        entity_type="product",
        entity_id=result.sku,
        detail=result.model_dump(),
    )
    return result


@router.get("/summary", response_model=InventorySummary)
def inventory_summary(
    user: User = Depends(_managers),
    service: InventoryService = Depends(inventory_service_dep),
) -> InventorySummary:
    return service.summary()


@router.get("/totals", response_model=AreaTotals)
def inventory_totals(
    user: User = Depends(_managers),
    service: InventoryService = Depends(inventory_service_dep),
) -> AreaTotals:
    return service.totals()


@router.post("/rebuild-stock", response_model=RebuildResult)
def rebuild_stock(
    user: User = Depends(_managers),
    service: ReconciliationService = Depends(reconciliation_service_dep),
) -> RebuildResult:
    result = service.rebuild_stock()
    log_event(
        service.db,
        user,
        action="stock_rebuild",
        entity_type="inventory",
        detail={"updated": result.updated},
    )
    return result


@router.post("/move-all-to-bodega", response_model=MigrationResult)
def move_all_to_bodega(
    user: User = Depends(_managers),
    service: AreaMigrationService = Depends(area_migration_service_dep),
) -> MigrationResult:
    result = service.move_all_to_bodega(actor_id=user.id)
    log_event(
        service.db,
        user,
        action="move_all_to_bodega",
        entity_type="inventory",
        detail=result.model_dump(),
    )
    return result


@router.post("/import", response_model=ImportResult)
def import_inventory(
    payload: ImportRequest,
    user: User = Depends(_managers),
    service: ImportService = Depends(import_service_dep),
) -> ImportResult:
    result = service.import_data(payload, actor_id=user.id)
    log_event(
        service.db,
        user,
        action="inventory_import",
        entity_type="inventory",
        detail=result.model_dump(),
    )
    return result
