"""
Transferts de stock entre entrepôts.

transfer_stock() est une unité atomique : validation, réservation de
capacité à destination, mouvement des quantités, libération à la source et
écriture au journal partagent UNE transaction. Tout échec (métier ou
stockage) => rollback complet, aucune ligne de journal.

Verrouillage (FOR UPDATE) :
    1. les deux entrepôts, par id croissant
    2. l'article source, puis l'article destination
Deux transferts qui touchent le même article ou la même capacité sont donc
sérialisés ; des transferts disjoints ne partagent aucun verrou. Le
version_id des lignes détecte en plus toute écriture concurrente (SQLite
ignore FOR UPDATE) : StaleDataError => rollback, jamais de mise à jour perdue.

Aucun retry automatique : l'appelant décide.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.logging import get_logger
from backend.app.db.models.core_types import ActivityType
from backend.services import capacity, items, ledger
from backend.services.exceptions import (
    InventoryError,
    InvalidOperation,
    InsufficientStock,
    ResourceNotFound,
    VolumeMismatchError,
)
from backend.services.items import ItemState

logger = get_logger("services.transfers")


@dataclass(frozen=True)
class TransferRequest:
    item_sku: str
    source_warehouse_id: int
    destination_warehouse_id: int
    quantity: int
    notes: str | None = None


@dataclass(frozen=True)
class TransferResult:
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
    source_item: ItemState
    destination_item: ItemState
    summary: str


@dataclass(frozen=True)
class TransferError:
    transfer_index: int
    item_sku: str
    error_message: str


@dataclass
class BulkTransferResult:
    total_transfers: int
    results: list[TransferResult] = field(default_factory=list)
    errors: list[TransferError] = field(default_factory=list)

    @property
    def successful_transfers(self) -> int:
        return len(self.results)

    @property
    def failed_transfers(self) -> int:
        return len(self.errors)


def transfer_stock(db: Session, request: TransferRequest, actor_id: int) -> TransferResult:
    """
    Déplace request.quantity unités du SKU de la source vers la destination.

    Possède la frontière transactionnelle : commit en cas de succès, rollback
    sur toute exception (qui est ensuite relancée telle quelle).
    """
    # 1) avant toute lecture
    if request.source_warehouse_id == request.destination_warehouse_id:
        raise InvalidOperation("Source and destination warehouses must be different")
    if not items.is_positive_int(request.quantity):
        raise InvalidOperation("Transfer quantity must be a positive integer")

    quantity = request.quantity

    try:
        result = _transfer_in_transaction(db, request, quantity, actor_id)
        db.commit()
    except InventoryError as exc:
        db.rollback()
        logger.info(
            "transfer_rejected",
            extra={
                "sku": request.item_sku,
                "source_warehouse_id": request.source_warehouse_id,
                "destination_warehouse_id": request.destination_warehouse_id,
                "quantity": quantity,
                "error_code": exc.code,
                "reason": exc.message,
            },
        )
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "transfer_aborted_storage_error",
            extra={
                "sku": request.item_sku,
                "source_warehouse_id": request.source_warehouse_id,
                "destination_warehouse_id": request.destination_warehouse_id,
                "quantity": quantity,
            },
        )
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        "transfer_committed",
        extra={"activity_id": result.activity_id, "sku": result.item_sku, "quantity": quantity, "actor_id": actor_id},
    )
    return result


def _transfer_in_transaction(
    db: Session,
    request: TransferRequest,
    quantity: int,
    actor_id: int,
) -> TransferResult:
    # 2) + 3) entrepôts (verrouillés, ordre d'id croissant)
    warehouses = capacity.lock_warehouses(
        db, [request.source_warehouse_id, request.destination_warehouse_id]
    )
    source_wh = warehouses.get(int(request.source_warehouse_id))
    if source_wh is None:
        raise ResourceNotFound("Warehouse", "id", request.source_warehouse_id)
    if not source_wh.active:
        raise InvalidOperation(f"Source warehouse '{source_wh.name}' is not active")

    dest_wh = warehouses.get(int(request.destination_warehouse_id))
    if dest_wh is None:
        raise ResourceNotFound("Warehouse", "id", request.destination_warehouse_id)
    if not dest_wh.active:
        raise InvalidOperation(f"Destination warehouse '{dest_wh.name}' is not active")

    # 4) article source
    source_item = items.find_item(db, request.item_sku, source_wh.id, lock=True)
    if source_item is None:
        raise ResourceNotFound(
            "InventoryItem",
            "sku",
            request.item_sku,
            message=f"InventoryItem with SKU '{request.item_sku}' not found in source warehouse '{source_wh.name}'",
        )

    # 5) stock disponible
    if quantity > source_item.quantity:
        raise InsufficientStock(request.item_sku, int(source_item.quantity), quantity)

    # 5b) fusion : le volume unitaire doit être identique des deux côtés
    dest_item = items.find_item(db, request.item_sku, dest_wh.id, lock=True)
    volume_per_unit = Decimal(source_item.volume_per_unit or 0)
    if dest_item is not None and Decimal(dest_item.volume_per_unit or 0) != volume_per_unit:
        raise VolumeMismatchError(request.item_sku, volume_per_unit, Decimal(dest_item.volume_per_unit or 0))

    # 6) réservation de capacité à destination
    delta_volume = volume_per_unit * quantity
    capacity.reserve(dest_wh, delta_volume)

    # 7) -> 10) mutation
    previous_quantity = int(source_item.quantity)
    new_quantity = items.adjust_quantity(source_item, -quantity)
    dest_item = items.create_or_merge(db, dest_wh, source_item, quantity, existing=dest_item)
    capacity.release(source_wh, delta_volume)

    summary = f"Transferred {quantity} units of {source_item.sku} from {source_wh.name} to {dest_wh.name}"
    notes = request.notes if request.notes else summary

    activity = ledger.append_activity(
        db,
        item=source_item,
        activity_type=ActivityType.transfer,
        quantity_change=-quantity,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        performed_by=actor_id,
        source_warehouse_id=source_wh.id,
        destination_warehouse_id=dest_wh.id,
        notes=notes,
    )

    return TransferResult(
        activity_id=int(activity.id),
        item_sku=source_item.sku,
        item_name=source_item.name,
        source_warehouse_name=source_wh.name,
        destination_warehouse_name=dest_wh.name,
        quantity_transferred=quantity,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        timestamp=activity.timestamp,
        performed_by=actor_id,
        notes=notes,
        source_item=items.snapshot(source_item),
        destination_item=items.snapshot(dest_item),
        summary=summary,
    )


def bulk_transfer_stock(
    db: Session,
    requests: Sequence[TransferRequest],
    actor_id: int,
) -> BulkTransferResult:
    """
    Passe chaque demande à transfer_stock, indépendamment : chaque ligne a sa
    propre transaction, un échec n'annule ni ne bloque les autres. Les
    erreurs gardent l'index d'origine dans la liste.
    """
    if not requests:
        raise InvalidOperation("Bulk transfer requires at least one transfer")

    bulk = BulkTransferResult(total_transfers=len(requests))
    for index, request in enumerate(requests):
        try:
            bulk.results.append(transfer_stock(db, request, actor_id))
        except InventoryError as exc:
            bulk.errors.append(TransferError(index, request.item_sku, exc.message))
        except Exception as exc:
            # stockage ou erreur imprévue : la ligne échoue, les suivantes passent quand même
            logger.exception(
                "bulk_transfer_line_failed",
                extra={"transfer_index": index, "sku": request.item_sku, "actor_id": actor_id},
            )
            bulk.errors.append(TransferError(index, request.item_sku, str(exc)))

    logger.info(
        "bulk_transfer_done",
        extra={
            "total": bulk.total_transfers,
            "succeeded": bulk.successful_transfers,
            "failed": bulk.failed_transfers,
            "actor_id": actor_id,
        },
    )
    return bulk
