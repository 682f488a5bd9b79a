from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class InventoryItemRead(BaseModel):
    id: int
    warehouse_id: int
    sku: str
    name: str
    description: str | None
    category: str | None
    brand: str | None
    quantity: int
    volume_per_unit: Decimal
    unit_price: Decimal | None
    reorder_level: int | None
    barcode: str | None
    warranty_end_date: date | None
    expiration_date: date | None
    is_low_stock: bool

    class Config:
        from_attributes = True


class ReceiveCreate(BaseModel):
    warehouse_id: int
    sku: str = Field(min_length=1, max_length=50)
    quantity: int = Field(gt=0)
    name: str | None = Field(default=None, max_length=255)
    volume_per_unit: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    brand: str | None = Field(default=None, max_length=100)
    unit_price: Decimal | None = Field(default=None, ge=0)
    reorder_level: int | None = Field(default=None, ge=0)
    barcode: str | None = Field(default=None, max_length=100)
    warranty_end_date: date | None = None
    expiration_date: date | None = None
    notes: str | None = None


class SaleCreate(BaseModel):
    quantity: int = Field(gt=0)
    notes: str | None = None


class AdjustmentCreate(BaseModel):
    quantity_change: int
    notes: str | None = None


class ItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    brand: str | None = Field(default=None, max_length=100)
    unit_price: Decimal | None = Field(default=None, ge=0)
    volume_per_unit: Decimal | None = Field(default=None, ge=0)
    reorder_level: int | None = Field(default=None, ge=0)
    barcode: str | None = Field(default=None, max_length=100)
    warranty_end_date: date | None = None
    expiration_date: date | None = None
