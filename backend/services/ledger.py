"""
Journal des mouvements de stock (append-only).

append_activity() est la seule écriture : un INSERT, jamais d'UPDATE ni de
DELETE. Les lectures (par article, SKU, type, acteur, entrepôt, période)
sont des projections en lecture seule, hors du chemin d'écriture.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from backend.app.db.immutability import register_immutability_listeners
from backend.app.db.models.core_types import ActivityType
from backend.app.db.models.models_v1 import InventoryItem, StockActivity
from backend.services.exceptions import InvalidOperation, ResourceNotFound

register_immutability_listeners()


def _check_warehouse_refs(
    activity_type: ActivityType,
    source_warehouse_id: int | None,
    destination_warehouse_id: int | None,
) -> None:
    if activity_type == ActivityType.transfer:
        if source_warehouse_id is None or destination_warehouse_id is None:
            raise InvalidOperation("TRANSFER activity requires source and destination warehouses")
        if source_warehouse_id == destination_warehouse_id:
            raise InvalidOperation("TRANSFER activity requires two different warehouses")
    elif activity_type == ActivityType.receive:
        if source_warehouse_id is not None or destination_warehouse_id is None:
            raise InvalidOperation("RECEIVE activity requires a destination warehouse only")


def append_activity(
    db: Session,
    *,
    item: InventoryItem,
    activity_type: ActivityType,
    quantity_change: int,
    previous_quantity: int,
    new_quantity: int,
    performed_by: int,
    source_warehouse_id: int | None = None,
    destination_warehouse_id: int | None = None,
    notes: str | None = None,
    timestamp: datetime | None = None,
) -> StockActivity:
    _check_warehouse_refs(activity_type, source_warehouse_id, destination_warehouse_id)

    activity = StockActivity(
        item_id=item.id,
        item_sku=item.sku,
        activity_type=activity_type,
        quantity_change=quantity_change,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        source_warehouse_id=source_warehouse_id,
        destination_warehouse_id=destination_warehouse_id,
        performed_by=performed_by,
        timestamp=timestamp or datetime.now(timezone.utc),
        notes=notes,
    )
    db.add(activity)
    # flush pour obtenir l'id ; le commit reste à l'appelant
    db.flush()
    return activity


# ---------- READ SIDE ----------
@dataclass(frozen=True)
class ActivityFilter:
    item_id: int | None = None
    sku: str | None = None
    activity_type: ActivityType | None = None
    performed_by: int | None = None
    warehouse_id: int | None = None
    start: datetime | None = None
    end: datetime | None = None


def list_activities(db: Session, filters: ActivityFilter | None = None) -> list[StockActivity]:
    f = filters or ActivityFilter()
    stmt = select(StockActivity).order_by(StockActivity.timestamp.desc(), StockActivity.id.desc())

    if f.item_id is not None:
        stmt = stmt.where(StockActivity.item_id == f.item_id)
    if f.sku:
        stmt = stmt.where(func.lower(StockActivity.item_sku) == f.sku.lower())
    if f.activity_type is not None:
        stmt = stmt.where(StockActivity.activity_type == f.activity_type)
    if f.performed_by is not None:
        stmt = stmt.where(StockActivity.performed_by == f.performed_by)
    if f.warehouse_id is not None:
        stmt = stmt.where(
            or_(
                StockActivity.source_warehouse_id == f.warehouse_id,
                StockActivity.destination_warehouse_id == f.warehouse_id,
            )
        )
    if f.start is not None:
        stmt = stmt.where(StockActivity.timestamp >= f.start)
    if f.end is not None:
        stmt = stmt.where(StockActivity.timestamp <= f.end)

    return list(db.execute(stmt).scalars().all())


def get_activity(db: Session, activity_id: int) -> StockActivity:
    activity = db.get(StockActivity, activity_id)
    if activity is None:
        raise ResourceNotFound("StockActivity", "id", activity_id)
    return activity
