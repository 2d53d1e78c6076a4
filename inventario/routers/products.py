from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from inventario.audit import log_event
from inventario.deps import inventory_service_dep, product_service_dep
from inventario.models import ROLE_BODEGA, ROLE_DESCARGUE, ROLE_MANAGER, ROLE_SURTIDO, User
from inventario.schemas import ActivityRead, ProductCreate, ProductRead, ProductStockRead
from inventario.security import require_roles
from inventario.services.inventory_service import InventoryService
from inventario.services.product_service import ProductService

router = APIRouter(tags=["products"])


@router.post("/products", response_model=ProductRead)
def create_product(
    payload: ProductCreate,
    user: User = Depends(require_roles(ROLE_MANAGER)),
    service: ProductService = Depends(product_service_dep),
) -> ProductRead:
    created = service.create(payload)
    log_event(
        service.db,
        user,
        action="product_create",
        entity_type="product",
        entity_id=created.sku,
        detail={"name": created.name},
    )
    return ProductRead.model_validate(created)


@router.get("/products", response_model=list[ProductStockRead])
def list_products(
    q: Optional[str] = None,
    user: User = Depends(require_roles(ROLE_MANAGER)),
    service: ProductService = Depends(product_service_dep),
) -> list[ProductStockRead]:
    return service.list_with_stock(query=q or "")


@router.get("/products/{sku}/activity", response_model=list[ActivityRead])
def product_activity(
    sku: str,
    user: User = Depends(require_roles(ROLE_MANAGER, ROLE_BODEGA, ROLE_SURTIDO, ROLE_DESCARGUE)),
    service: InventoryService = Depends(inventory_service_dep),
) -> list[ActivityRead]:
    return service.activity(sku)
