from __future__ import annotations

import logging

from ledger_indexer.core.logging import (
    _ContainerFormatter,
    _ContextFilter,
    bind_event_context,
    event_id_var,
    request_id_var,
    setup_logging,
)


def _record(
    level: int = logging.INFO, msg: str = "hello", **extra: object
) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="handler.py",
        lineno=7,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_noisy_libraries_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_bind_event_context_sets_and_restores() -> None:
    assert event_id_var.get() is None
    with bind_event_context(
        event_id="0xabc-1", contract="CourseFactory", event_name="CourseCreated", block_number=9
    ):
        assert event_id_var.get() == "0xabc-1"
    assert event_id_var.get() is None


def test_context_filter_copies_event_and_request_ids() -> None:
    record = _record()
    token = request_id_var.set("req-1")
    try:
        with bind_event_context(
            event_id="0xabc-1",
            contract="CourseLicense",
            event_name="LicenseMinted",
            block_number=42,
        ):
            assert _ContextFilter().filter(record)
    finally:
        request_id_var.reset(token)

    assert record.request_id == "req-1"  # type: ignore[attr-defined]
    assert record.event_id == "0xabc-1"  # type: ignore[attr-defined]
    assert record.contract == "CourseLicense"  # type: ignore[attr-defined]
    assert record.block_number == 42  # type: ignore[attr-defined]


def test_context_filter_keeps_explicit_extra() -> None:
    record = _record(event_id="0xother-0")
    with bind_event_context(
        event_id="0xabc-1", contract="CourseFactory", event_name="CourseCreated", block_number=1
    ):
        _ContextFilter().filter(record)
    assert record.event_id == "0xother-0"  # type: ignore[attr-defined]


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record())
    assert "hello" in output
    assert "[handler.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING, "bad thing"))
    assert "bad thing" in output
    assert "[handler.py:7]" in output


def test_formatter_appends_event_and_request_context() -> None:
    record = _record(
        request_id="req-9",
        contract="ProgressTracker",
        event_name="SectionCompleted",
        block_number=1234,
    )
    output = _ContainerFormatter().format(record)
    assert "[req req-9]" in output
    assert "{ProgressTracker.SectionCompleted@1234}" in output


def test_formatter_omits_empty_context() -> None:
    record = _record(request_id=None, event_name=None)
    output = _ContainerFormatter().format(record)
    assert "[req" not in output
    assert "{" not in output
