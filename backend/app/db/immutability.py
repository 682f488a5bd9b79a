"""
Immutabilité du journal (stock_activities) côté ORM.

Une StockActivity est écrite une fois puis plus jamais touchée : tout UPDATE
ou DELETE passant par SQLAlchemy est bloqué avant d'atteindre la base.
Seule exception : item_id remis à NULL quand l'article est supprimé
(ON DELETE SET NULL), item_sku gardant la trace.

La migration initiale pose un trigger Postgres équivalent pour le SQL brut.
"""

from __future__ import annotations

from sqlalchemy import event, inspect

from backend.app.core.logging import get_logger
from backend.app.db.models.models_v1 import StockActivity
from backend.services.exceptions import LedgerImmutableError

logger = get_logger("db.immutability")

# Attributs qu'on peut remettre à None quand l'article disparaît
_DETACHABLE = frozenset({"item_id", "item"})


def _changed_attributes(target) -> set[str]:
    state = inspect(target)
    return {attr.key for attr in state.attrs if attr.history.has_changes()}


def _check_activity_update(mapper, connection, target):
    changed = _changed_attributes(target)
    if not changed:
        return
    if changed <= _DETACHABLE and target.item_id is None:
        return

    logger.error(
        "ledger_mutation_blocked",
        extra={"activity_id": target.id, "operation": "UPDATE", "fields": sorted(changed)},
    )
    raise LedgerImmutableError(target.id, "UPDATE")


def _check_activity_delete(mapper, connection, target):
    logger.error(
        "ledger_mutation_blocked",
        extra={"activity_id": target.id, "operation": "DELETE"},
    )
    raise LedgerImmutableError(target.id, "DELETE")


def register_immutability_listeners() -> None:
    """Enregistre les listeners (idempotent)."""
    if not event.contains(StockActivity, "before_update", _check_activity_update):
        event.listen(StockActivity, "before_update", _check_activity_update)
    if not event.contains(StockActivity, "before_delete", _check_activity_delete):
        event.listen(StockActivity, "before_delete", _check_activity_delete)
