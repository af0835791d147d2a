"""Tests for the structured log formatter."""

import json
import logging

from media_accounts.core.logging import JSONFormatter, get_logger


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="media_accounts.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_one_object():
    entry = json.loads(JSONFormatter().format(_record("Invalid service token")))

    assert entry["level"] == "WARNING"
    assert entry["logger"] == "media_accounts.test"
    assert entry["message"] == "Invalid service token"
    assert "client_ip" not in entry


def test_json_formatter_includes_client_ip():
    entry = json.loads(JSONFormatter().format(_record("denied", client_ip="10.0.0.7")))

    assert entry["client_ip"] == "10.0.0.7"


def test_json_formatter_escapes_hostile_input():
    message = 'user "x"\n{"level": "CRITICAL"}'

    entry = json.loads(JSONFormatter().format(_record(message)))

    assert entry["message"] == message
    assert entry["level"] == "WARNING"


def test_get_logger_prefix():
    assert get_logger("sweeper").name == "media_accounts.sweeper"
