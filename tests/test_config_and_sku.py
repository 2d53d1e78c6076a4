"""Tests for configuration loading and SKU generation."""

import json
import os

import pytest

from inventario import inventory_config
from inventario.errors import InventoryError, SkuConflict
from inventario.inventory_config import (
    DEFAULT_CONFIG_PATH,
    InventoryConfig,
    ProductsConfig,
    load_inventory_config,
    reset_inventory_config_cache,
)
from inventario.schemas import ProductCreate
from inventario.services.product_service import ProductService
from inventario.utils import SkuGenerationError, generate_sku


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    def _use(name: str, content: str):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        monkeypatch.setenv("INVENTORY_CONFIG_PATH", str(path))
        reset_inventory_config_cache()
        return path

    yield _use
    reset_inventory_config_cache()


class TestInventoryConfig:
    def test_defaults_when_file_is_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INVENTORY_CONFIG_PATH", str(tmp_path / "missing.conf"))
        reset_inventory_config_cache()

        cfg = load_inventory_config()

        assert cfg == InventoryConfig()
        assert cfg.stock.low_stock_threshold == 5
        assert cfg.movements.transfer_reason == "transfer"

    def test_conf_file(self, config_path):
        config_path(
            "inventory.conf",
            "[areas]\nsurtido = Piso de venta\n\n"
            "[stock]\nlow_stock_threshold = 2.5\nsummary_limit = 7\n\n"
            "[products]\nsku_prefix = INV\nsku_width = 4\n",
        )

        cfg = load_inventory_config()

        assert cfg.areas.labels == {"bodega": "Bodega", "surtido": "Piso de venta"}
        assert cfg.stock.low_stock_threshold == 2.5
        assert cfg.stock.summary_limit == 7
        assert cfg.stock.list_limit == 500
        assert cfg.products.sku_prefix == "INV"
        assert cfg.products.sku_width == 4
        assert cfg.movements.migration_reason == "move_all_to_bodega"

    def test_json_file(self, config_path):
        config_path("inventory.json", json.dumps({"movements": {"transfer_reason": "reposicion"}}))
        cfg = load_inventory_config()
        assert cfg.movements.transfer_reason == "reposicion"
        assert cfg.products == ProductsConfig()

    def test_cached_until_mtime_changes(self, config_path):
        path = config_path("inventory.conf", "[stock]\nlist_limit = 10\n")
        first = load_inventory_config()
        assert load_inventory_config() is first

        path.write_text("[stock]\nlist_limit = 20\n", encoding="utf-8")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

        assert load_inventory_config().stock.list_limit == 20

    def test_bundled_file_is_found_from_any_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv("INVENTORY_CONFIG_PATH", raising=False)
        monkeypatch.chdir(tmp_path)
        reset_inventory_config_cache()
        try:
            assert DEFAULT_CONFIG_PATH.is_file()
            assert load_inventory_config() == InventoryConfig()
            assert inventory_config._cached_config[1] == str(DEFAULT_CONFIG_PATH)
        finally:
            reset_inventory_config_cache()


class TestGenerateSku:
    def test_first_free_candidate(self):
        taken = {"SKU000001", "SKU000002"}
        assert generate_sku(taken.__contains__) == "SKU000003"

    def test_prefix_width_and_start(self):
        assert generate_sku(lambda s: False, prefix="INV", width=3, start=42) == "INV042"

    def test_exhaustion_raises(self):
        calls = []

        def always_taken(candidate):
            calls.append(candidate)
            return True

        with pytest.raises(SkuGenerationError):
            generate_sku(always_taken, max_attempts=3)
        assert calls == ["SKU000001", "SKU000002", "SKU000003"]


class TestProductService:
    def test_blank_sku_is_generated(self, db_session, config):
        service = ProductService(db_session, config=config)
        first = service.create(ProductCreate(name="Sal", sku="  "))
        second = service.create(ProductCreate(name="Pimienta"))
        assert first.sku == "SKU000001"
        assert second.sku == "SKU000002"

    def test_explicit_sku_is_kept(self, db_session, config):
        product = ProductService(db_session, config=config).create(
            ProductCreate(sku=" X-1 ", name=" Café ", category=" ", unit="kg")
        )
        assert (product.sku, product.name, product.category, product.unit) == ("X-1", "Café", None, "kg")

    def test_duplicate_sku_conflicts(self, db_session, config, product):
        with pytest.raises(SkuConflict) as exc:
            ProductService(db_session, config=config).create(ProductCreate(sku="A001", name="Otro"))
        assert exc.value.status_code == 409

    def test_generation_exhausted_conflicts(self, db_session):
        # one product under the prefix, so the first candidate is A002, which is taken
        cfg = InventoryConfig(products=ProductsConfig(sku_prefix="A", sku_width=3, sku_max_attempts=1))
        ProductService(db_session, config=cfg).create(ProductCreate(sku="A002", name="Ocupado"))
        with pytest.raises(SkuConflict):
            ProductService(db_session, config=cfg).create(ProductCreate(name="Otro"))

    def test_empty_name_is_rejected(self, db_session, config):
        with pytest.raises(InventoryError) as exc:
            ProductService(db_session, config=config).create(ProductCreate(name="   "))
        assert exc.value.status_code == 400

    def test_list_with_stock(self, db_session, config, inventory, product, other_product):
        inventory.record_movement("A001", "bodega", "ingreso", 10)
        inventory.transfer("A001", "bodega", "surtido", 4)

        rows = {r.sku: r for r in ProductService(db_session, config=config).list_with_stock()}

        assert (rows["A001"].stock_bodega, rows["A001"].stock_surtido, rows["A001"].stock_total) == (6, 4, 10)
        assert rows["B002"].stock_total == 0
