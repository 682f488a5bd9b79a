"""
Capacité volumique des entrepôts.

current_capacity est un agrégat mis en cache :
    current_capacity = SUM(quantity * volume_per_unit) des articles de l'entrepôt

Il est maintenu de façon incrémentale (reserve / release) dans la même
transaction que les mouvements d'articles, sous le même verrou de ligne.
reconcile_warehouse_capacity() recalcule la vraie somme et corrige le cache
en cas de dérive : à lancer périodiquement, jamais sur le chemin chaud.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from backend.app.core.logging import get_logger
from backend.app.db.models.models_v1 import Warehouse, InventoryItem
from backend.services.exceptions import (
    CapacityInconsistencyError,
    ResourceNotFound,
    WarehouseCapacityExceeded,
)

logger = get_logger("services.capacity")

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


def lock_warehouses(db: Session, warehouse_ids: Iterable[int]) -> dict[int, Warehouse]:
    """
    Charge les entrepôts avec verrou (FOR UPDATE), toujours par id croissant
    pour que deux transferts croisés ne se bloquent pas mutuellement.
    Les ids absents ne sont simplement pas dans le dict retourné.
    """
    ids = sorted({int(wid) for wid in warehouse_ids if wid is not None})
    if not ids:
        return {}

    rows = (
        db.execute(
            select(Warehouse)
            .where(Warehouse.id.in_(ids))
            .order_by(Warehouse.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    return {int(w.id): w for w in rows}


def available_capacity(warehouse: Warehouse) -> Decimal:
    return _dec(warehouse.max_capacity) - _dec(warehouse.current_capacity)


def utilization_percentage(warehouse: Warehouse) -> Decimal:
    max_capacity = _dec(warehouse.max_capacity)
    if max_capacity == _ZERO:
        return _ZERO
    pct = _dec(warehouse.current_capacity) / max_capacity * Decimal("100")
    return pct.quantize(_CENT, rounding=ROUND_HALF_UP)


def is_alert_triggered(warehouse: Warehouse) -> bool:
    # ratio exact, sans l'arrondi d'affichage de utilization_percentage
    max_capacity = _dec(warehouse.max_capacity)
    if max_capacity == _ZERO:
        return False
    return _dec(warehouse.current_capacity) * Decimal("100") >= _dec(warehouse.capacity_alert_threshold) * max_capacity


def reserve(warehouse: Warehouse, delta_volume: Decimal) -> None:
    """
    Réserve delta_volume dans l'entrepôt (ligne supposée verrouillée).
    Lève WarehouseCapacityExceeded si current + delta > max ; rien n'est
    modifié dans ce cas.
    """
    delta = _dec(delta_volume)
    current = _dec(warehouse.current_capacity)
    if current + delta > _dec(warehouse.max_capacity):
        raise WarehouseCapacityExceeded(warehouse.name, available_capacity(warehouse), delta)
    warehouse.current_capacity = current + delta


def release(warehouse: Warehouse, delta_volume: Decimal) -> None:
    current = _dec(warehouse.current_capacity)
    warehouse.current_capacity = max(_ZERO, current - _dec(delta_volume))


def list_capacity_alerts(db: Session) -> list[Warehouse]:
    rows = (
        db.execute(select(Warehouse).where(Warehouse.active.is_(True)).order_by(Warehouse.name))
        .scalars()
        .all()
    )
    return [w for w in rows if is_alert_triggered(w)]


# ---------- RECONCILIATION ----------
@dataclass(frozen=True)
class CapacityReconciliation:
    warehouse_id: int
    warehouse_name: str
    cached_capacity: Decimal
    actual_capacity: Decimal

    @property
    def corrected(self) -> bool:
        return self.cached_capacity != self.actual_capacity


def _actual_volume(db: Session, warehouse_id: int) -> Decimal:
    total = db.execute(
        select(
            func.coalesce(
                func.sum(InventoryItem.quantity * InventoryItem.volume_per_unit),
                0,
            )
        ).where(InventoryItem.warehouse_id == warehouse_id)
    ).scalar_one()
    return _dec(total).quantize(_CENT, rounding=ROUND_HALF_UP)


def reconcile_warehouse_capacity(db: Session, warehouse_id: int) -> CapacityReconciliation:
    """
    Recalcule current_capacity depuis les lignes d'articles et corrige le cache.

    Ne commit pas : l'appelant décide (cf. reconcile_all_capacities).
    Si la vraie somme dépasse max_capacity, on ne peut pas corriger sans
    violer l'invariant : CapacityInconsistencyError, ligne inchangée.
    """
    locked = lock_warehouses(db, [warehouse_id])
    warehouse = locked.get(int(warehouse_id))
    if warehouse is None:
        raise ResourceNotFound("Warehouse", "id", warehouse_id)

    cached = _dec(warehouse.current_capacity)
    actual = _actual_volume(db, warehouse.id)

    if actual > _dec(warehouse.max_capacity):
        logger.error(
            "capacity_reconciliation_impossible",
            extra={
                "warehouse_id": warehouse.id,
                "cached_capacity": cached,
                "actual_capacity": actual,
                "max_capacity": warehouse.max_capacity,
            },
        )
        raise CapacityInconsistencyError(warehouse.name, actual, _dec(warehouse.max_capacity))

    if cached != actual:
        logger.warning(
            "capacity_drift_corrected",
            extra={"warehouse_id": warehouse.id, "cached_capacity": cached, "actual_capacity": actual},
        )
        warehouse.current_capacity = actual

    return CapacityReconciliation(
        warehouse_id=int(warehouse.id),
        warehouse_name=warehouse.name,
        cached_capacity=cached,
        actual_capacity=actual,
    )


def reconcile_all_capacities(db: Session) -> list[CapacityReconciliation]:
    """Réconcilie chaque entrepôt dans sa propre transaction."""
    warehouse_ids = db.execute(select(Warehouse.id).order_by(Warehouse.id)).scalars().all()
    results: list[CapacityReconciliation] = []
    for wid in warehouse_ids:
        try:
            results.append(reconcile_warehouse_capacity(db, wid))
            db.commit()
        except CapacityInconsistencyError:
            db.rollback()
            continue
        except Exception:
            db.rollback()
            raise
    return results
