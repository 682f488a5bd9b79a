from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_actor_id, get_db
from backend.app.schemas.stock_transfer import (
    BulkTransferCreate,
    BulkTransferRead,
    TransferCreate,
    TransferRead,
)
from backend.services.transfers import TransferRequest, bulk_transfer_stock, transfer_stock

router = APIRouter(prefix="/stock-transfers")


def _to_request(payload: TransferCreate) -> TransferRequest:
    return TransferRequest(
        item_sku=payload.item_sku,
        source_warehouse_id=payload.source_warehouse_id,
        destination_warehouse_id=payload.destination_warehouse_id,
        quantity=payload.quantity,
        notes=payload.notes,
    )


@router.post("", response_model=TransferRead)
def create_transfer(
    payload: TransferCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    result = transfer_stock(db, _to_request(payload), actor_id)
    return TransferRead.model_validate(result)


@router.post("/bulk", response_model=BulkTransferRead)
def create_bulk_transfer(
    payload: BulkTransferCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    """
    Transferts en lot : chaque ligne est indépendante.
    Réponse 200 même si certaines lignes échouent (voir `errors`).
    """
    bulk = bulk_transfer_stock(db, [_to_request(t) for t in payload.transfers], actor_id)
    return BulkTransferRead.model_validate(bulk)
