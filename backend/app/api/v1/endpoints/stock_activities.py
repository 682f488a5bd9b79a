from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.db.models.core_types import ActivityType
from backend.app.schemas.stock_activity import StockActivityRead
from backend.services.ledger import ActivityFilter, get_activity, list_activities

router = APIRouter(prefix="/stock-activities")


@router.get("", response_model=list[StockActivityRead])
def get_activities(
    item_id: int | None = None,
    sku: str | None = None,
    activity_type: ActivityType | None = None,
    performed_by: int | None = None,
    warehouse_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
):
    """
    Journal (READ ONLY)
    - warehouse_id : entrepôt source OU destination
    - start / end : bornes incluses
    """
    return list_activities(
        db,
        ActivityFilter(
            item_id=item_id,
            sku=sku,
            activity_type=activity_type,
            performed_by=performed_by,
            warehouse_id=warehouse_id,
            start=start,
            end=end,
        ),
    )


@router.get("/{activity_id}", response_model=StockActivityRead)
def get_one_activity(activity_id: int, db: Session = Depends(get_db)):
    return get_activity(db, activity_id)
