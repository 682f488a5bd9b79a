from decimal import Decimal

from pydantic import BaseModel


class WarehouseRead(BaseModel):
    id: int
    name: str
    location: str
    max_capacity: Decimal
    current_capacity: Decimal  # READ ONLY : agrégat maintenu par le moteur
    capacity_alert_threshold: Decimal
    utilization_percentage: Decimal
    alert_triggered: bool
    active: bool


class CapacityReconciliationRead(BaseModel):
    warehouse_id: int
    warehouse_name: str
    cached_capacity: Decimal
    actual_capacity: Decimal
    corrected: bool

    class Config:
        from_attributes = True
