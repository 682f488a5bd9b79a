from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TransferCreate(BaseModel):
    item_sku: str = Field(min_length=1, max_length=50)
    source_warehouse_id: int
    destination_warehouse_id: int
    quantity: int = Field(gt=0)
    notes: str | None = None


class BulkTransferCreate(BaseModel):
    transfers: list[TransferCreate] = Field(min_length=1)


class ItemStateRead(BaseModel):
    id: int
    sku: str
    name: str
    warehouse_id: int
    quantity: int

    class Config:
        from_attributes = True


class TransferRead(BaseModel):
    activity_id: int
    item_sku: str
    item_name: str
    source_warehouse_name: str
    destination_warehouse_name: str
    quantity_transferred: int
    previous_quantity: int
    new_quantity: int
    timestamp: datetime
    performed_by: int
    notes: str | None
    source_item: ItemStateRead
    destination_item: ItemStateRead
    summary: str

    class Config:
        from_attributes = True


class TransferErrorRead(BaseModel):
    transfer_index: int
    item_sku: str
    error_message: str

    class Config:
        from_attributes = True


class BulkTransferRead(BaseModel):
    total_transfers: int
    successful_transfers: int
    failed_transfers: int
    results: list[TransferRead]
    errors: list[TransferErrorRead]

    class Config:
        from_attributes = True
