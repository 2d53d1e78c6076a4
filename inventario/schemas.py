from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LoginRequest(BaseModel):
    username: str
    password: str


class UserRead(BaseModel):
    id: int
    username: str
    role: str
    is_active: bool

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    sku: Optional[str] = None
    name: str
    category: Optional[str] = None
    unit: Optional[str] = None


class ProductRead(BaseModel):
    id: int
    sku: str
    name: str
    category: Optional[str]
    unit: Optional[str]

    model_config = {"from_attributes": True}


class ProductStockRead(BaseModel):
    id: int
    sku: str
    name: str
    category: Optional[str] = None
    unit: Optional[str] = None
    stock_bodega: float
    stock_surtido: float
    stock_total: float


class MovementCreate(BaseModel):
    sku: str
    area: str
    type: str
    quantity: float
    reason: Optional[str] = None

    @field_validator("sku")
    @classmethod
    def sku_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("sku must not be empty")
        return v.strip()


class TransferCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: str
    from_area: str = Field(alias="fromArea")
    to_area: str = Field(alias="toArea")
    quantity: float
    reason: Optional[str] = None

    @field_validator("sku")
    @classmethod
    def sku_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("sku must not be empty")
        return v.strip()


class MovementRead(BaseModel):
    id: int
    product_id: int
    area: str
    type: str
    quantity: float
    reason: Optional[str]
    user_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class MovementResult(BaseModel):
    ok: bool = True
    stock: float
    movement: MovementRead


class TransferResult(BaseModel):
    ok: bool = True
    sku: str
    from_area: str
    to_area: str
    quantity: float
    stock_from: float
    stock_to: float


class StockRead(BaseModel):
    product_id: int
    sku: str
    name: str
    area: str
    area_label: Optional[str] = None
    quantity: float


class ProductAreasStock(BaseModel):
    sku: str
    name: str
    stock_bodega: float
    stock_surtido: float
    stock_total: float


class ActivityRead(BaseModel):
    id: int
    created_at: datetime
    sku: str
    name: str
    area: str
    type: str
    quantity: float
    reason: Optional[str] = None
    user_id: Optional[int] = None
    username: Optional[str] = None


class InventorySummary(BaseModel):
    low_stock: list[StockRead]
    last_movements: list[ActivityRead]


class AreaTotals(BaseModel):
    stock_bodega_total: float
    stock_surtido_total: float


class RebuildResult(BaseModel):
    ok: bool = True
    updated: int


class DriftRead(BaseModel):
    product_id: int
    sku: str
    area: str
    projected: float
    replayed: float


class MigrationResult(BaseModel):
    ok: bool = True
    products: int
    quantity: float


class ImportProduct(BaseModel):
    sku: str
    name: str
    category: Optional[str] = None
    unit: Optional[str] = None


class ImportStock(BaseModel):
    sku: str
    area: str
    quantity: float


class ImportMovement(BaseModel):
    sku: str
    area: str
    type: str
    quantity: float
    reason: Optional[str] = None
    created_at: Optional[datetime] = None


class ImportRequest(BaseModel):
    products: list[ImportProduct] = Field(default_factory=list)
    inventory_stock: list[ImportStock] = Field(default_factory=list)
    inventory_movements: list[ImportMovement] = Field(default_factory=list)


class ImportResult(BaseModel):
    ok: bool = True
    products: int
    stock: int
    movements: int
    skipped: int
    updated: int
