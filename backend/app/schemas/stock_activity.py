from datetime import datetime

from pydantic import BaseModel

from backend.app.db.models.core_types import ActivityType


class StockActivityRead(BaseModel):
    id: int
    item_id: int | None  # NULL une fois l'article supprimé
    item_sku: str
    activity_type: ActivityType
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    source_warehouse_id: int | None
    destination_warehouse_id: int | None
    performed_by: int
    timestamp: datetime
    notes: str | None

    class Config:
        from_attributes = True
