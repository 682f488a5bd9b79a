from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor_id, get_db
from backend.app.schemas.inventory_item import (
    AdjustmentCreate,
    InventoryItemRead,
    ItemUpdate,
    ReceiveCreate,
    SaleCreate,
)
from backend.app.schemas.stock_activity import StockActivityRead
from backend.services import inventory
from backend.services.items import list_items

router = APIRouter(prefix="/items")


@router.get("", response_model=list[InventoryItemRead])
def get_items(
    warehouse_id: int | None = None,
    sku: str | None = None,
    low_stock: bool = False,
    db: Session = Depends(get_db),
):
    return list_items(db, warehouse_id=warehouse_id, sku=sku, low_stock=low_stock)


@router.post("/receive", response_model=StockActivityRead)
def receive(
    payload: ReceiveCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    request = inventory.ReceiveRequest(**payload.model_dump())
    return inventory.receive_stock(db, request, actor_id)


@router.post("/{item_id}/sale", response_model=StockActivityRead)
def sell(
    item_id: int,
    payload: SaleCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return inventory.record_sale(db, item_id, payload.quantity, actor_id, payload.notes)


@router.post("/{item_id}/adjust", response_model=StockActivityRead)
def adjust(
    item_id: int,
    payload: AdjustmentCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return inventory.adjust_stock(db, item_id, payload.quantity_change, actor_id, payload.notes)


@router.patch("/{item_id}", response_model=StockActivityRead | None)
def update(
    item_id: int,
    payload: ItemUpdate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    # None => aucun attribut n'a réellement changé, rien n'est journalisé
    return inventory.update_item(db, item_id, payload.model_dump(exclude_unset=True), actor_id)


@router.delete("/{item_id}", response_model=StockActivityRead)
def delete(
    item_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return inventory.delete_item(db, item_id, actor_id)
