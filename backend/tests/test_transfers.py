from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from backend.app.db.models.core_types import ActivityType
from backend.app.db.models.models_v1 import InventoryItem, StockActivity, Warehouse
from backend.services import items, ledger
from backend.services.exceptions import (
    InsufficientStock,
    InvalidOperation,
    ResourceNotFound,
    VolumeMismatchError,
    WarehouseCapacityExceeded,
)
from backend.services.transfers import TransferRequest, transfer_stock


def _activity_count(db) -> int:
    return db.execute(select(func.count()).select_from(StockActivity)).scalar_one()


def _capacity_total(db) -> Decimal:
    return sum(
        (Decimal(c) for c in db.execute(select(Warehouse.current_capacity)).scalars().all()),
        Decimal("0"),
    )


@pytest.fixture
def two_warehouses(make_warehouse, make_item):
    a = make_warehouse("WH-A")
    b = make_warehouse("WH-B")
    make_item(a, "SKU-1", 100, volume_per_unit="2")
    make_item(b, "SKU-1", 50, volume_per_unit="2")
    return a, b


def test_transfer_merges_into_existing_destination_row(db_session, actor, two_warehouses):
    a, b = two_warehouses

    result = transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 20), actor.id)

    assert items.find_item(db_session, "SKU-1", a.id).quantity == 80
    assert items.find_item(db_session, "SKU-1", b.id).quantity == 70
    assert db_session.get(Warehouse, a.id).current_capacity == Decimal("160")
    assert db_session.get(Warehouse, b.id).current_capacity == Decimal("140")

    assert result.quantity_transferred == 20
    assert result.previous_quantity == 100
    assert result.new_quantity == 80
    assert result.source_item.quantity == 80
    assert result.destination_item.quantity == 70
    assert result.summary == "Transferred 20 units of SKU-1 from WH-A to WH-B"
    assert result.notes == result.summary

    activity = ledger.get_activity(db_session, result.activity_id)
    assert activity.activity_type == ActivityType.transfer
    assert activity.quantity_change == -20
    assert activity.previous_quantity == 100
    assert activity.new_quantity == 80
    assert activity.source_warehouse_id == a.id
    assert activity.destination_warehouse_id == b.id
    assert activity.performed_by == actor.id
    assert _activity_count(db_session) == 1


def test_transfer_creates_destination_row_with_copied_attributes(db_session, actor, make_warehouse, make_item):
    a = make_warehouse("WH-A")
    b = make_warehouse("WH-B")
    make_item(a, "SKU-9", 10, volume_per_unit="3.5", name="Pallet jack", brand="Acme", reorder_level=2)

    result = transfer_stock(db_session, TransferRequest("SKU-9", a.id, b.id, 4, notes="rebalancing"), actor.id)

    created = items.find_item(db_session, "SKU-9", b.id)
    assert created is not None
    assert created.id == result.destination_item.id
    assert created.quantity == 4
    assert created.name == "Pallet jack"
    assert created.brand == "Acme"
    assert created.reorder_level == 2
    assert created.volume_per_unit == Decimal("3.5")
    assert db_session.get(Warehouse, b.id).current_capacity == Decimal("14")
    assert ledger.get_activity(db_session, result.activity_id).notes == "rebalancing"


def test_transfer_of_whole_stock_keeps_empty_source_row(db_session, actor, two_warehouses):
    a, b = two_warehouses

    transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 100), actor.id)

    source = items.find_item(db_session, "SKU-1", a.id)
    assert source is not None
    assert source.quantity == 0
    assert db_session.get(Warehouse, a.id).current_capacity == Decimal("0")


def test_same_warehouse_rejected_before_any_lookup(db_session, actor):
    # entrepôt inexistant : la règle source != destination passe avant
    with pytest.raises(InvalidOperation, match="must be different"):
        transfer_stock(db_session, TransferRequest("SKU-1", 999, 999, 5), actor.id)


@pytest.mark.parametrize("quantity", [0, -3, 2.5, "3", True, None])
def test_quantity_must_be_a_positive_int(db_session, actor, two_warehouses, quantity):
    a, b = two_warehouses

    with pytest.raises(InvalidOperation, match="positive"):
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, quantity), actor.id)

    assert _activity_count(db_session) == 0


def test_unknown_source_warehouse(db_session, actor, make_warehouse):
    b = make_warehouse("WH-B")

    with pytest.raises(ResourceNotFound) as exc_info:
        transfer_stock(db_session, TransferRequest("SKU-1", b.id + 100, b.id, 5), actor.id)

    assert exc_info.value.resource == "Warehouse"
    assert exc_info.value.value == b.id + 100


def test_unknown_destination_warehouse(db_session, actor, two_warehouses):
    a, _ = two_warehouses

    with pytest.raises(ResourceNotFound) as exc_info:
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, 4242, 5), actor.id)

    assert exc_info.value.value == 4242
    assert items.find_item(db_session, "SKU-1", a.id).quantity == 100


@pytest.mark.parametrize("inactive, label", [("source", "Source"), ("destination", "Destination")])
def test_inactive_warehouse_rejected(db_session, actor, make_warehouse, make_item, inactive, label):
    a = make_warehouse("WH-A", active=inactive != "source")
    b = make_warehouse("WH-B", active=inactive != "destination")
    make_item(a, "SKU-1", 10)

    with pytest.raises(InvalidOperation, match=f"{label} warehouse '.*' is not active"):
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 5), actor.id)

    assert items.find_item(db_session, "SKU-1", a.id).quantity == 10
    assert _activity_count(db_session) == 0


def test_sku_missing_in_source(db_session, actor, make_warehouse, make_item):
    a = make_warehouse("WH-A")
    b = make_warehouse("WH-B")
    # présent seulement à destination
    make_item(b, "SKU-1", 10)

    with pytest.raises(ResourceNotFound, match="not found in source warehouse 'WH-A'"):
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 5), actor.id)


def test_insufficient_stock_changes_nothing(db_session, actor, two_warehouses):
    a, b = two_warehouses

    with pytest.raises(InsufficientStock) as exc_info:
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 101), actor.id)

    assert exc_info.value.available == 100
    assert exc_info.value.requested == 101
    assert str(exc_info.value) == "Insufficient stock for SKU 'SKU-1'. Available: 100, Requested: 101"
    assert items.find_item(db_session, "SKU-1", a.id).quantity == 100
    assert items.find_item(db_session, "SKU-1", b.id).quantity == 50
    assert _activity_count(db_session) == 0


def test_destination_capacity_exceeded_changes_nothing(db_session, actor, make_warehouse, make_item):
    a = make_warehouse("WH-A")
    b = make_warehouse("WH-B", max_capacity="1000", current_capacity="990")
    make_item(a, "BULKY", 5, volume_per_unit="20")

    with pytest.raises(WarehouseCapacityExceeded) as exc_info:
        transfer_stock(db_session, TransferRequest("BULKY", a.id, b.id, 1), actor.id)

    assert "Available capacity: 10.00, Requested: 20.00" in str(exc_info.value)
    assert items.find_item(db_session, "BULKY", a.id).quantity == 5
    assert items.find_item(db_session, "BULKY", b.id) is None
    assert db_session.get(Warehouse, a.id).current_capacity == Decimal("100")
    assert db_session.get(Warehouse, b.id).current_capacity == Decimal("990")
    assert _activity_count(db_session) == 0


def test_volume_mismatch_rejects_merge(db_session, actor, make_warehouse, make_item):
    a = make_warehouse("WH-A")
    b = make_warehouse("WH-B")
    make_item(a, "SKU-1", 10, volume_per_unit="2")
    make_item(b, "SKU-1", 10, volume_per_unit="3")

    with pytest.raises(VolumeMismatchError) as exc_info:
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 5), actor.id)

    assert isinstance(exc_info.value, InvalidOperation)
    assert items.find_item(db_session, "SKU-1", a.id).quantity == 10
    assert items.find_item(db_session, "SKU-1", b.id).quantity == 10


def test_storage_failure_rolls_back_everything(db_session, actor, two_warehouses, monkeypatch):
    a, b = two_warehouses

    def _failing_append(*args, **kwargs):
        raise OperationalError("INSERT INTO stock_activities", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ledger, "append_activity", _failing_append)

    with pytest.raises(OperationalError):
        transfer_stock(db_session, TransferRequest("SKU-1", a.id, b.id, 20), actor.id)

    assert items.find_item(db_session, "SKU-1", a.id).quantity == 100
    assert items.find_item(db_session, "SKU-1", b.id).quantity == 50
    assert db_session.get(Warehouse, a.id).current_capacity == Decimal("200")
    assert db_session.get(Warehouse, b.id).current_capacity == Decimal("100")
    assert _activity_count(db_session) == 0


def test_transfers_conserve_quantity_and_volume(db_session, actor, make_warehouse, make_item):
    a = make_warehouse("WH-A", max_capacity="500")
    b = make_warehouse("WH-B", max_capacity="500")
    c = make_warehouse("WH-C", max_capacity="60")
    make_item(a, "SKU-1", 100, volume_per_unit="1.5")
    make_item(b, "SKU-1", 20, volume_per_unit="1.5")

    def total_quantity() -> int:
        return db_session.execute(
            select(func.sum(InventoryItem.quantity)).where(InventoryItem.sku == "SKU-1")
        ).scalar_one()

    before_quantity = total_quantity()
    before_capacity = _capacity_total(db_session)

    moves = [(a, b, 30), (b, c, 40), (c, a, 5), (a, c, 200), (b, c, 6)]
    for source, destination, quantity in moves:
        try:
            transfer_stock(db_session, TransferRequest("SKU-1", source.id, destination.id, quantity), actor.id)
        except (InsufficientStock, WarehouseCapacityExceeded):
            pass

    assert total_quantity() == before_quantity
    assert _capacity_total(db_session) == before_capacity
    for wh in db_session.execute(select(Warehouse)).scalars():
        assert Decimal(wh.current_capacity) <= Decimal(wh.max_capacity)
    # (a, c, 200) et (b, c, 6) échouent : une ligne de journal par succès
    assert _activity_count(db_session) == 3
