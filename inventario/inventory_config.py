from __future__ import annotations

import configparser
import json
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field

from inventario.models import AREA_BODEGA, AREA_SURTIDO


class AreasConfig(BaseModel):
    labels: Dict[str, str] = Field(
        default_factory=lambda: {AREA_BODEGA: "Bodega", AREA_SURTIDO: "Surtido"}
    )


class StockConfig(BaseModel):
    low_stock_threshold: float = 5
    list_limit: int = 500
    activity_limit: int = 200
    summary_limit: int = 20


class MovementsConfig(BaseModel):
    transfer_reason: str = "transfer"
    migration_reason: str = "move_all_to_bodega"


class ProductsConfig(BaseModel):
    sku_prefix: str = "SKU"
    sku_width: int = 6
    sku_max_attempts: int = 20


class InventoryConfig(BaseModel):
    areas: AreasConfig = Field(default_factory=AreasConfig)
    stock: StockConfig = Field(default_factory=StockConfig)
    movements: MovementsConfig = Field(default_factory=MovementsConfig)
    products: ProductsConfig = Field(default_factory=ProductsConfig)


_cached_config: Optional[Tuple[InventoryConfig, str, float]] = None


DEFAULT_CONFIG_PATH = Path(__file__).with_name("inventory_config.conf")


def _config_path() -> Path:
    override = os.getenv("INVENTORY_CONFIG_PATH", "").strip()
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_inventory_config() -> InventoryConfig:
    """Carga la configuración; se relee cuando cambia el mtime del archivo."""
    global _cached_config

    path = _config_path()
    path_str = str(path)
    try:
        mtime = float(path.stat().st_mtime)
    except OSError:
        mtime = 0.0

    if _cached_config is not None:
        cfg_cached, cached_path, cached_mtime = _cached_config
        if cached_path == path_str and cached_mtime == mtime:
            return cfg_cached

    if not path.exists():
        cfg0 = InventoryConfig()
        _cached_config = (cfg0, path_str, mtime)
        return cfg0

    if path.suffix.lower() == ".json":
        cfg_json = InventoryConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
        _cached_config = (cfg_json, path_str, mtime)
        return cfg_json

    parser = configparser.ConfigParser()
    parser.read(path, encoding="utf-8")

    def get(section: str, key: str, default: str) -> str:
        return (parser.get(section, key, fallback=default) or "").strip() or default

    defaults = InventoryConfig()
    labels = dict(defaults.areas.labels)
    for area in labels:
        labels[area] = get("areas", area, labels[area])

    cfg = InventoryConfig.model_validate(
        {
            "areas": {"labels": labels},
            "stock": {
                "low_stock_threshold": get(
                    "stock", "low_stock_threshold", str(defaults.stock.low_stock_threshold)
                ),
                "list_limit": get("stock", "list_limit", str(defaults.stock.list_limit)),
                "activity_limit": get("stock", "activity_limit", str(defaults.stock.activity_limit)),
                "summary_limit": get("stock", "summary_limit", str(defaults.stock.summary_limit)),
            },
            "movements": {
                "transfer_reason": get("movements", "transfer_reason", defaults.movements.transfer_reason),
                "migration_reason": get("movements", "migration_reason", defaults.movements.migration_reason),
            },
            "products": {
                "sku_prefix": get("products", "sku_prefix", defaults.products.sku_prefix),
                "sku_width": get("products", "sku_width", str(defaults.products.sku_width)),
                "sku_max_attempts": get(
                    "products", "sku_max_attempts", str(defaults.products.sku_max_attempts)
                ),
            },
        }
    )

    _cached_config = (cfg, path_str, mtime)
    return cfg


def reset_inventory_config_cache() -> None:
    global _cached_config
    _cached_config = None
