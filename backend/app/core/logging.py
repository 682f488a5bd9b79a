"""Logging du moteur de stock (namespace "stockflow")."""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

_LOGGER_PREFIX = "stockflow"

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class JsonFormatter(logging.Formatter):
    """Une ligne JSON par record, champs `extra=` inclus."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(*, level: str | int = logging.INFO, json_lines: bool = False) -> None:
    """Configure la hiérarchie "stockflow" (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return

        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level)

        handler = logging.StreamHandler(sys.stderr)
        if json_lines:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
        _configured = True
