from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import InventoryItem, Warehouse
from backend.services.exceptions import InsufficientStock, ResourceNotFound

# Attributs descriptifs recopiés quand un transfert crée l'article à destination
COPIED_ATTRIBUTES = (
    "name",
    "description",
    "category",
    "brand",
    "unit_price",
    "volume_per_unit",
    "reorder_level",
    "barcode",
    "warranty_end_date",
    "expiration_date",
)


@dataclass(frozen=True)
class ItemState:
    id: int
    sku: str
    name: str
    warehouse_id: int
    quantity: int


def snapshot(item: InventoryItem) -> ItemState:
    return ItemState(
        id=int(item.id),
        sku=item.sku,
        name=item.name,
        warehouse_id=int(item.warehouse_id),
        quantity=int(item.quantity),
    )


def find_item(db: Session, sku: str, warehouse_id: int, *, lock: bool = False) -> InventoryItem | None:
    stmt = (
        select(InventoryItem)
        .where(InventoryItem.sku == sku)
        .where(InventoryItem.warehouse_id == warehouse_id)
    )
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.execute(stmt).scalar_one_or_none()


def require_item(db: Session, sku: str, warehouse_id: int, *, lock: bool = False) -> InventoryItem:
    item = find_item(db, sku, warehouse_id, lock=lock)
    if item is None:
        raise ResourceNotFound("InventoryItem", "sku", sku)
    return item


def lock_item(db: Session, item_id: int) -> InventoryItem:
    item = (
        db.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if item is None:
        raise ResourceNotFound("InventoryItem", "id", item_id)
    return item


def is_positive_int(value) -> bool:
    # bool hérite de int : True ne doit pas passer pour 1
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def adjust_quantity(item: InventoryItem, delta: int) -> int:
    """Applique delta à la quantité ; jamais en dessous de zéro."""
    new_quantity = int(item.quantity) + int(delta)
    if new_quantity < 0:
        raise InsufficientStock(item.sku, int(item.quantity), -int(delta))
    item.quantity = new_quantity
    return new_quantity


def create_or_merge(
    db: Session,
    warehouse: Warehouse,
    source_item: InventoryItem,
    quantity: int,
    *,
    existing: InventoryItem | None = None,
) -> InventoryItem:
    """
    Dépose `quantity` unités du SKU de source_item dans `warehouse`.

    - article déjà présent à destination : on incrémente, pas de nouvelle ligne
    - sinon : nouvelle ligne, attributs descriptifs recopiés depuis la source

    `existing` évite une seconde lecture quand l'appelant a déjà verrouillé
    la ligne destination.
    """
    target = existing if existing is not None else find_item(db, source_item.sku, warehouse.id, lock=True)
    if target is not None:
        adjust_quantity(target, quantity)
        return target

    target = InventoryItem(
        sku=source_item.sku,
        warehouse_id=warehouse.id,
        quantity=quantity,
        **{attr: getattr(source_item, attr) for attr in COPIED_ATTRIBUTES},
    )
    db.add(target)
    db.flush()
    return target


def list_items(
    db: Session,
    *,
    warehouse_id: int | None = None,
    sku: str | None = None,
    low_stock: bool = False,
) -> list[InventoryItem]:
    stmt = select(InventoryItem).order_by(InventoryItem.warehouse_id, InventoryItem.sku)
    if warehouse_id is not None:
        stmt = stmt.where(InventoryItem.warehouse_id == warehouse_id)
    if sku:
        stmt = stmt.where(InventoryItem.sku == sku)
    if low_stock:
        stmt = (
            stmt.where(InventoryItem.reorder_level.is_not(None))
            .where(InventoryItem.quantity <= InventoryItem.reorder_level)
        )
    return list(db.execute(stmt).scalars().all())
