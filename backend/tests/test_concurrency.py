"""
Deux transactions réelles sur une base SQLite fichier.

SQLite ignore FOR UPDATE : c'est le version_id des lignes qui détecte
l'écriture concurrente. Le transfert doit alors échouer proprement, sans
écraser l'autre écriture ni laisser de ligne de journal.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import InventoryItem, StockActivity, User, Warehouse
from backend.services import capacity, items
from backend.services.transfers import TransferRequest, transfer_stock


@pytest.fixture
def seeded(file_session_factory):
    with file_session_factory() as s:
        user = User(username="operator", role=Role.staff, active=True)
        a = Warehouse(name="WH-A", location="A", max_capacity=Decimal("1000"), current_capacity=Decimal("100"))
        b = Warehouse(name="WH-B", location="B", max_capacity=Decimal("1000"), current_capacity=Decimal("0"))
        s.add_all([user, a, b])
        s.flush()
        s.add(InventoryItem(warehouse_id=a.id, sku="SKU-1", name="Crate", quantity=100, volume_per_unit=Decimal("1")))
        s.commit()
        return user.id, a.id, b.id


def test_concurrent_capacity_write_aborts_transfer(file_session_factory, seeded, monkeypatch):
    actor_id, a_id, b_id = seeded
    original_reserve = capacity.reserve

    def _reserve_after_concurrent_write(warehouse, delta_volume):
        # une autre transaction modifie l'entrepôt destination et commit
        with file_session_factory() as other:
            wh = other.get(Warehouse, b_id)
            wh.current_capacity = Decimal(wh.current_capacity) + Decimal("5")
            other.commit()
        original_reserve(warehouse, delta_volume)

    monkeypatch.setattr(capacity, "reserve", _reserve_after_concurrent_write)

    with file_session_factory() as db:
        with pytest.raises(StaleDataError):
            transfer_stock(db, TransferRequest("SKU-1", a_id, b_id, 20), actor_id)

    with file_session_factory() as check:
        # l'écriture concurrente a gagné, le transfert n'a rien laissé
        assert check.get(Warehouse, b_id).current_capacity == Decimal("5")
        assert check.get(Warehouse, a_id).current_capacity == Decimal("100")
        assert items.find_item(check, "SKU-1", a_id).quantity == 100
        assert items.find_item(check, "SKU-1", b_id) is None
        assert check.execute(select(func.count()).select_from(StockActivity)).scalar_one() == 0


def test_sequential_transfers_on_separate_sessions_see_fresh_rows(file_session_factory, seeded):
    actor_id, a_id, b_id = seeded

    with file_session_factory() as first, file_session_factory() as second:
        # second lit l'article avant que first ne transfère
        assert items.find_item(second, "SKU-1", a_id).quantity == 100

        transfer_stock(first, TransferRequest("SKU-1", a_id, b_id, 30), actor_id)
        # le verrou recharge la ligne (populate_existing) : pas de lecture périmée
        transfer_stock(second, TransferRequest("SKU-1", a_id, b_id, 30), actor_id)

    with file_session_factory() as check:
        assert items.find_item(check, "SKU-1", a_id).quantity == 40
        assert items.find_item(check, "SKU-1", b_id).quantity == 60
        assert check.get(Warehouse, b_id).current_capacity == Decimal("60")
