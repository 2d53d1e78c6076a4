"""Tests for rebuilding the stock projection from the movement log."""

import random
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from inventario.errors import StorageError
from inventario.models import InventoryMovement, InventoryStock, Product
from inventario.repositories.inventory_repository import InventoryRepository

T0 = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


def _log(db, product_id, area, history, start=T0, step=timedelta(minutes=1)):
    """Append ``(type, quantity)`` or ``(type, quantity, minute)`` rows directly."""
    for i, item in enumerate(history):
        movement_type, qty = item[0], item[1]
        at = start + item[2] * step if len(item) > 2 else start + i * step
        db.add(
            InventoryMovement(
                product_id=product_id,
                area=area,
                type=movement_type,
                quantity=qty,
                created_at=at,
            )
        )
    db.commit()


def _entry(db, product_id, area):
    entry = db.scalar(
        select(InventoryStock).where(
            InventoryStock.product_id == product_id, InventoryStock.area == area
        )
    )
    return None if entry is None else float(entry.quantity)


def _replay(history):
    """Reference replay: stable sort by timestamp keeps insertion (id) order on ties."""
    qty = 0.0
    for movement_type, q, _minute in sorted(history, key=lambda h: h[2]):
        if movement_type == "ingreso":
            qty += q
        elif movement_type == "salida":
            qty -= q
        else:
            qty = q
    return max(0.0, round(qty, 4))


class TestRebuild:
    def test_last_ajuste_is_the_base(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [
            ("ingreso", 50),
            ("salida", 20),
            ("ajuste", 100),
            ("ingreso", 5),
        ])

        result = reconciliation.rebuild_stock()

        assert result.ok is True
        assert result.updated == 1
        assert _entry(db_session, product.id, "bodega") == 105
        assert reconciliation.replay_stock(product.id, "bodega") == 105

    def test_without_ajuste_sums_from_zero(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ingreso", 10), ("ingreso", 2.5), ("salida", 4)])
        reconciliation.rebuild_stock()
        assert _entry(db_session, product.id, "bodega") == 8.5

    def test_negative_raw_sum_is_floored(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ingreso", 5), ("salida", 10), ("ingreso", 3)])
        reconciliation.rebuild_stock()
        assert _entry(db_session, product.id, "bodega") == 0
        assert reconciliation.replay_stock(product.id, "bodega") == 0

    def test_overwrites_drifted_entry(self, db_session, inventory, reconciliation, product):
        inventory.record_movement("A001", "bodega", "ingreso", 30)
        entry = db_session.scalar(select(InventoryStock).where(InventoryStock.product_id == product.id))
        entry.quantity = 999
        db_session.commit()

        reconciliation.rebuild_stock()

        assert _entry(db_session, product.id, "bodega") == 30

    def test_entries_without_history_are_left_alone(self, db_session, reconciliation, product, other_product):
        db_session.add(InventoryStock(product_id=other_product.id, area="bodega", quantity=7))
        db_session.commit()
        _log(db_session, product.id, "bodega", [("ingreso", 1)])

        result = reconciliation.rebuild_stock()

        assert result.updated == 1
        assert _entry(db_session, other_product.id, "bodega") == 7

    def test_is_idempotent(self, db_session, reconciliation, product, other_product):
        _log(db_session, product.id, "bodega", [("ingreso", 9), ("ajuste", 4), ("salida", 1)])
        _log(db_session, other_product.id, "surtido", [("ajuste", 3), ("salida", 1)])

        reconciliation.rebuild_stock()
        first = {(e.product_id, e.area): float(e.quantity) for e in db_session.scalars(select(InventoryStock))}
        reconciliation.rebuild_stock()
        second = {(e.product_id, e.area): float(e.quantity) for e in db_session.scalars(select(InventoryStock))}

        assert first == second == {(product.id, "bodega"): 3, (other_product.id, "surtido"): 2}

    def test_empty_log(self, reconciliation):
        assert reconciliation.rebuild_stock().updated == 0


class TestTies:
    def test_movement_after_ajuste_at_same_time_counts(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ingreso", 40, 0), ("ajuste", 10, 1), ("ingreso", 5, 1)])
        reconciliation.rebuild_stock()
        assert _entry(db_session, product.id, "bodega") == 15
        assert reconciliation.replay_stock(product.id, "bodega") == 15

    def test_movement_before_ajuste_at_same_time_is_absorbed(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ingreso", 5, 1), ("ajuste", 10, 1), ("salida", 2, 2)])
        reconciliation.rebuild_stock()
        assert _entry(db_session, product.id, "bodega") == 8

    def test_two_ajustes_at_same_time_last_id_wins(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ajuste", 10, 3), ("ajuste", 20, 3)])
        reconciliation.rebuild_stock()
        assert _entry(db_session, product.id, "bodega") == 20

    def test_late_inserted_older_movement_is_ordered_by_time(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ajuste", 10, 5)])
        _log(db_session, product.id, "bodega", [("ingreso", 100, 1)])
        reconciliation.rebuild_stock()
        assert _entry(db_session, product.id, "bodega") == 10


@pytest.mark.parametrize("seed", range(8))
def test_rebuild_matches_full_replay(db_session, reconciliation, product, other_product, seed):
    rng = random.Random(seed)
    expected = {}
    for pid in (product.id, other_product.id):
        for area in ("bodega", "surtido"):
            history = []
            for _ in range(rng.randint(0, 25)):
                movement_type = rng.choice(["ingreso", "ingreso", "salida", "salida", "ajuste"])
                qty = rng.randint(1, 40) / 2
                # few distinct minutes so equal timestamps are common
                history.append((movement_type, qty, rng.randint(0, 6)))
            if history:
                _log(db_session, pid, area, history)
                expected[(pid, area)] = _replay(history)

    reconciliation.rebuild_stock()

    for (pid, area), qty in expected.items():
        assert _entry(db_session, pid, area) == pytest.approx(qty)
        assert reconciliation.replay_stock(pid, area) == pytest.approx(qty)
    assert reconciliation.drift_report() == []


class TestDrift:
    def test_detects_manual_edit(self, db_session, inventory, reconciliation, product):
        inventory.record_movement("A001", "bodega", "ingreso", 12)
        inventory.record_movement("A001", "surtido", "ajuste", 3)
        assert reconciliation.drift_report() == []

        entry = db_session.scalar(
            select(InventoryStock).where(
                InventoryStock.product_id == product.id, InventoryStock.area == "bodega"
            )
        )
        entry.quantity = 2
        db_session.commit()

        drift = reconciliation.drift_report()
        assert len(drift) == 1
        assert drift[0].sku == "A001"
        assert drift[0].area == "bodega"
        assert drift[0].projected == 2
        assert drift[0].replayed == 12

        reconciliation.rebuild_stock()
        assert reconciliation.drift_report() == []

    def test_missing_entry_counts_as_drift(self, db_session, reconciliation, product):
        _log(db_session, product.id, "bodega", [("ingreso", 4)])
        drift = reconciliation.drift_report()
        assert [(d.area, d.projected, d.replayed) for d in drift] == [("bodega", 0, 4)]

    def test_entry_without_history_counts_as_drift(self, db_session, reconciliation, product):
        db_session.add(InventoryStock(product_id=product.id, area="surtido", quantity=6))
        db_session.commit()
        drift = reconciliation.drift_report()
        assert [(d.area, d.projected, d.replayed) for d in drift] == [("surtido", 6, 0)]


def test_rebuild_storage_failure_rolls_back(db_session, reconciliation, product, monkeypatch):
    _log(db_session, product.id, "bodega", [("ingreso", 4)])

    def boom(self):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(InventoryRepository, "reconciliation_rows", boom)

    with pytest.raises(StorageError):
        reconciliation.rebuild_stock()
    assert _entry(db_session, product.id, "bodega") is None
    assert db_session.get(Product, product.id) is not None
