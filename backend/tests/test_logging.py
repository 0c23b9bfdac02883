import json
import logging
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./settlement_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from fastapi.testclient import TestClient  # noqa: E402

from settlement.core.logging import JsonLogFormatter, get_structured_logger  # noqa: E402
from settlement.main import app  # noqa: E402


client = TestClient(app)


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="settlement.payouts",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_context_fields_as_json():
    line = JsonLogFormatter().format(
        _record("payout.dispatched", affiliate_id=4, payout_id=12, method="paypal", notes=None)
    )
    payload = json.loads(line)

    assert payload["message"] == "payout.dispatched"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "settlement.payouts"
    assert payload["affiliate_id"] == 4
    assert payload["payout_id"] == 12
    assert payload["method"] == "paypal"
    assert "notes" not in payload


def test_formatter_keeps_request_fields_even_when_empty():
    payload = json.loads(JsonLogFormatter().format(_record("request.completed", request_id=None, error_code=None)))

    assert payload["request_id"] is None
    assert payload["error_code"] is None


def test_structured_logger_is_configured_once():
    first = get_structured_logger("settlement.test_logger")
    second = get_structured_logger("settlement.test_logger")

    assert first is second
    assert len(first.handlers) == 1
    assert isinstance(first.handlers[0].formatter, JsonLogFormatter)
    assert first.propagate is False


def test_request_id_is_echoed_back():
    resp = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == "req-123"
