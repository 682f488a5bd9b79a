import json
import logging
from decimal import Decimal

from backend.app.core import logging as logging_setup
from backend.app.core.logging import JsonFormatter, get_logger


def test_loggers_live_under_stockflow_namespace():
    assert get_logger("services.transfers").name == "stockflow.services.transfers"


def test_json_formatter_keeps_extra_fields():
    record = logging.LogRecord("stockflow.test", logging.INFO, __file__, 1, "transfer_committed", (), None)
    record.activity_id = 7
    record.delta = Decimal("12.50")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "transfer_committed"
    assert payload["level"] == "INFO"
    assert payload["activity_id"] == 7
    assert payload["delta"] == "12.50"


def test_configure_logging_attaches_a_single_handler(monkeypatch):
    root = logging.getLogger("stockflow")
    before = list(root.handlers)
    monkeypatch.setattr(logging_setup, "_configured", False)

    logging_setup.configure_logging(level="INFO")
    logging_setup.configure_logging(level="DEBUG", json_lines=True)

    added = [h for h in root.handlers if h not in before]
    try:
        assert len(added) == 1
        assert not isinstance(added[0].formatter, JsonFormatter)
        assert logging_setup._configured is True
    finally:
        for handler in added:
            root.removeHandler(handler)
