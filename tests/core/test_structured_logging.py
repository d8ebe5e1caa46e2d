"""Tests for structured (JSON) logging output.

Log pipelines filter on top-level keys ("every warning for block N"), so
the context fields must arrive as keys, not inside the message text.
"""

from __future__ import annotations

import json
import logging
import sys

from ledger_indexer.core.logging import _JsonFormatter


def _record(
    level: int = logging.INFO, msg: str = "Hello %s", args: tuple = ("world",)
) -> logging.LogRecord:
    return logging.LogRecord(
        name="ledger_indexer.services.indexer",
        level=level,
        pathname="indexer.py",
        lineno=42,
        msg=msg,
        args=args,
        exc_info=None,
    )


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "ledger_indexer.services.indexer"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_includes_event_fields() -> None:
    record = _record(logging.WARNING, "Deferring event", ())
    record.event_id = "0xabc-4"  # type: ignore[attr-defined]
    record.contract = "CertificateManager"  # type: ignore[attr-defined]
    record.event_name = "CourseAddedToCertificate"  # type: ignore[attr-defined]
    record.block_number = 1234  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["event_id"] == "0xabc-4"
    assert parsed["contract"] == "CertificateManager"
    assert parsed["event_name"] == "CourseAddedToCertificate"
    assert parsed["block_number"] == 1234


def test_json_formatter_includes_request_fields() -> None:
    record = _record()
    # What the RequestContextMiddleware attaches
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.method = "GET"  # type: ignore[attr-defined]
    record.path = "/v1/courses/1"  # type: ignore[attr-defined]
    record.status_code = 200  # type: ignore[attr-defined]
    record.duration_ms = 12.5  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["path"] == "/v1/courses/1"
    assert parsed["status_code"] == 200
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_omits_unset_context() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert "event_id" not in parsed
    assert "request_id" not in parsed


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad payload")
    except ValueError:
        record = _record(logging.ERROR, "Stopping on event", ())
        record.exc_info = sys.exc_info()
    parsed = json.loads(_JsonFormatter().format(record))
    assert "ValueError: bad payload" in parsed["exception"]
