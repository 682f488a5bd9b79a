from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.db.models.models_v1 import Warehouse
from backend.app.schemas.warehouse import CapacityReconciliationRead, WarehouseRead
from backend.services import capacity

router = APIRouter(prefix="/warehouses")


def _read(w: Warehouse) -> WarehouseRead:
    return WarehouseRead(
        id=w.id,
        name=w.name,
        location=w.location,
        max_capacity=w.max_capacity,
        current_capacity=w.current_capacity,
        capacity_alert_threshold=w.capacity_alert_threshold,
        utilization_percentage=capacity.utilization_percentage(w),
        alert_triggered=capacity.is_alert_triggered(w),
        active=w.active,
    )


@router.get("", response_model=list[WarehouseRead])
def list_warehouses(active: bool | None = None, db: Session = Depends(get_db)):
    stmt = select(Warehouse).order_by(Warehouse.name)
    if active is not None:
        stmt = stmt.where(Warehouse.active.is_(active))
    return [_read(w) for w in db.execute(stmt).scalars().all()]


@router.get("/alerts", response_model=list[WarehouseRead])
def list_capacity_alerts(db: Session = Depends(get_db)):
    return [_read(w) for w in capacity.list_capacity_alerts(db)]


@router.post("/{warehouse_id}/reconcile-capacity", response_model=CapacityReconciliationRead)
def reconcile_capacity(warehouse_id: int, db: Session = Depends(get_db)):
    try:
        result = capacity.reconcile_warehouse_capacity(db, warehouse_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return CapacityReconciliationRead.model_validate(result)
