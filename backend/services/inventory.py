"""
Mutations de stock hors transferts : réception, vente, ajustement, mise à
jour des attributs, suppression d'article.

Chaque opération :
- verrouille l'entrepôt PUIS l'article (même ordre que les transferts)
- garde current_capacity cohérent (reserve / release)
- écrit exactement UNE ligne de journal de son type, explicitement
  (aucun trigger ne journalise à notre place)
- commit, ou rollback complet sur exception
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.core.logging import get_logger
from backend.app.db.models.core_types import ActivityType
from backend.app.db.models.models_v1 import InventoryItem, StockActivity, Warehouse
from backend.services import capacity, items, ledger
from backend.services.exceptions import (
    InsufficientStock,
    InvalidOperation,
    ResourceNotFound,
    VolumeMismatchError,
)

logger = get_logger("services.inventory")

UPDATABLE_FIELDS = frozenset(items.COPIED_ATTRIBUTES)


@dataclass(frozen=True)
class ReceiveRequest:
    warehouse_id: int
    sku: str
    quantity: int
    # utilisés seulement si le SKU n'existe pas encore dans l'entrepôt
    name: str | None = None
    volume_per_unit: Decimal | None = None
    description: str | None = None
    category: str | None = None
    brand: str | None = None
    unit_price: Decimal | None = None
    reorder_level: int | None = None
    barcode: str | None = None
    warranty_end_date: date | None = None
    expiration_date: date | None = None
    notes: str | None = None


@contextmanager
def _atomic(db: Session, operation: str) -> Iterator[None]:
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        logger.info("stock_operation_rolled_back", extra={"operation": operation})
        raise


def _lock_active_warehouse(db: Session, warehouse_id: int) -> Warehouse:
    warehouse = capacity.lock_warehouses(db, [warehouse_id]).get(int(warehouse_id))
    if warehouse is None:
        raise ResourceNotFound("Warehouse", "id", warehouse_id)
    if not warehouse.active:
        raise InvalidOperation(f"Warehouse '{warehouse.name}' is not active")
    return warehouse


def _lock_item_with_warehouse(db: Session, item_id: int) -> tuple[InventoryItem, Warehouse]:
    # lecture sans verrou pour connaître l'entrepôt, puis entrepôt -> article
    warehouse_id = db.execute(
        select(InventoryItem.warehouse_id).where(InventoryItem.id == item_id)
    ).scalar_one_or_none()
    if warehouse_id is None:
        raise ResourceNotFound("InventoryItem", "id", item_id)

    warehouse = capacity.lock_warehouses(db, [warehouse_id]).get(int(warehouse_id))
    if warehouse is None:
        raise ResourceNotFound("Warehouse", "id", warehouse_id)
    item = items.lock_item(db, item_id)
    return item, warehouse


def _volume(item: InventoryItem) -> Decimal:
    return Decimal(item.volume_per_unit or 0)


def receive_stock(db: Session, request: ReceiveRequest, actor_id: int) -> StockActivity:
    """Entrée de stock dans un entrepôt (crée la ligne SKU si absente)."""
    if not items.is_positive_int(request.quantity):
        raise InvalidOperation("Received quantity must be a positive integer")
    quantity = request.quantity

    with _atomic(db, "receive"):
        warehouse = _lock_active_warehouse(db, request.warehouse_id)
        item = items.find_item(db, request.sku, warehouse.id, lock=True)

        if item is None:
            if not request.name:
                raise InvalidOperation(f"Item name is required to receive new SKU '{request.sku}'")
            item = InventoryItem(
                sku=request.sku,
                warehouse_id=warehouse.id,
                name=request.name,
                quantity=0,
                volume_per_unit=request.volume_per_unit or Decimal("0"),
                description=request.description,
                category=request.category,
                brand=request.brand,
                unit_price=request.unit_price,
                reorder_level=request.reorder_level,
                barcode=request.barcode,
                warranty_end_date=request.warranty_end_date,
                expiration_date=request.expiration_date,
            )
            db.add(item)
            db.flush()
        elif request.volume_per_unit is not None and Decimal(request.volume_per_unit) != _volume(item):
            raise VolumeMismatchError(request.sku, Decimal(request.volume_per_unit), _volume(item))

        capacity.reserve(warehouse, _volume(item) * quantity)
        previous = int(item.quantity)
        new = items.adjust_quantity(item, quantity)

        activity = ledger.append_activity(
            db,
            item=item,
            activity_type=ActivityType.receive,
            quantity_change=quantity,
            previous_quantity=previous,
            new_quantity=new,
            performed_by=actor_id,
            destination_warehouse_id=warehouse.id,
            notes=request.notes or f"Received {quantity} units into {warehouse.name}",
        )

    logger.info("stock_received", extra={"activity_id": activity.id, "sku": request.sku, "quantity": quantity})
    return activity


def record_sale(
    db: Session,
    item_id: int,
    quantity: int,
    actor_id: int,
    notes: str | None = None,
) -> StockActivity:
    if not items.is_positive_int(quantity):
        raise InvalidOperation("Sold quantity must be a positive integer")

    with _atomic(db, "sale"):
        item, warehouse = _lock_item_with_warehouse(db, item_id)
        if quantity > item.quantity:
            raise InsufficientStock(item.sku, int(item.quantity), quantity)

        previous = int(item.quantity)
        new = items.adjust_quantity(item, -quantity)
        capacity.release(warehouse, _volume(item) * quantity)

        activity = ledger.append_activity(
            db,
            item=item,
            activity_type=ActivityType.sale,
            quantity_change=-quantity,
            previous_quantity=previous,
            new_quantity=new,
            performed_by=actor_id,
            source_warehouse_id=warehouse.id,
            notes=notes or f"Sold {quantity} units from {warehouse.name}",
        )

    logger.info("stock_sold", extra={"activity_id": activity.id, "item_id": item_id, "quantity": quantity})
    return activity


def adjust_stock(
    db: Session,
    item_id: int,
    quantity_change: int,
    actor_id: int,
    notes: str | None = None,
) -> StockActivity:
    """Ajustement manuel (inventaire tournant, casse...) : seule source d'ADJUSTMENT."""
    if not isinstance(quantity_change, int) or isinstance(quantity_change, bool):
        raise InvalidOperation("Quantity adjustment must be an integer")
    if quantity_change == 0:
        raise InvalidOperation("Quantity adjustment must be non-zero")

    with _atomic(db, "adjustment"):
        item, warehouse = _lock_item_with_warehouse(db, item_id)
        previous = int(item.quantity)
        if previous + quantity_change < 0:
            raise InvalidOperation("Quantity adjustment would result in negative quantity")

        volume_change = _volume(item) * quantity_change
        if volume_change > 0:
            capacity.reserve(warehouse, volume_change)
        else:
            capacity.release(warehouse, -volume_change)
        new = items.adjust_quantity(item, quantity_change)

        sign = "+" if quantity_change > 0 else ""
        activity = ledger.append_activity(
            db,
            item=item,
            activity_type=ActivityType.adjustment,
            quantity_change=quantity_change,
            previous_quantity=previous,
            new_quantity=new,
            performed_by=actor_id,
            source_warehouse_id=warehouse.id,
            notes=notes or f"Manual quantity adjustment: {sign}{quantity_change}",
        )

    logger.info("stock_adjusted", extra={"activity_id": activity.id, "item_id": item_id, "change": quantity_change})
    return activity


def update_item(
    db: Session,
    item_id: int,
    changes: dict[str, Any],
    actor_id: int,
) -> StockActivity | None:
    """
    Met à jour les attributs descriptifs. Un changement de volume_per_unit
    réserve / libère la différence de volume. Retourne None si rien ne change.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidOperation(f"Fields not updatable: {', '.join(sorted(unknown))}")

    with _atomic(db, "update"):
        item, warehouse = _lock_item_with_warehouse(db, item_id)

        effective = {k: v for k, v in changes.items() if getattr(item, k) != v}
        if not effective:
            return None
        if "name" in effective and not effective["name"]:
            raise InvalidOperation("Item name cannot be empty")

        if "volume_per_unit" in effective:
            if effective["volume_per_unit"] is None:
                raise InvalidOperation("Volume per unit is required")
            new_volume = Decimal(effective["volume_per_unit"])
            if new_volume < 0:
                raise InvalidOperation("Volume per unit cannot be negative")
            delta = (new_volume - _volume(item)) * int(item.quantity)
            if delta > 0:
                capacity.reserve(warehouse, delta)
            else:
                capacity.release(warehouse, -delta)

        for key, value in effective.items():
            setattr(item, key, value)

        activity = ledger.append_activity(
            db,
            item=item,
            activity_type=ActivityType.update,
            quantity_change=0,
            previous_quantity=int(item.quantity),
            new_quantity=int(item.quantity),
            performed_by=actor_id,
            source_warehouse_id=warehouse.id,
            notes=f"Updated fields: {', '.join(sorted(effective))}",
        )

    return activity


def delete_item(db: Session, item_id: int, actor_id: int, notes: str | None = None) -> StockActivity:
    """
    Supprime la ligne article. Le journal garde item_sku (item_id passe à
    NULL via ON DELETE SET NULL) : l'historique survit.
    """
    with _atomic(db, "delete"):
        item, warehouse = _lock_item_with_warehouse(db, item_id)
        previous = int(item.quantity)
        capacity.release(warehouse, item.total_volume)

        activity = ledger.append_activity(
            db,
            item=item,
            activity_type=ActivityType.delete,
            quantity_change=-previous,
            previous_quantity=previous,
            new_quantity=0,
            performed_by=actor_id,
            source_warehouse_id=warehouse.id,
            notes=notes or f"Deleted item {item.sku} from {warehouse.name}",
        )
        db.delete(item)
        db.flush()

    logger.info("item_deleted", extra={"activity_id": activity.id, "item_id": item_id})
    return activity
