"""Logging configuration for ledger-indexer.

TWO PROCESSES, ONE LOG FORMAT
-------------------------------
The indexer runs as two processes that share this module:

  worker  — consumes the ordered event stream and writes the entity graph.
            Each log line should say WHICH event it was produced for, so a
            warning like "enrollment missing" can be traced back to one
            (transaction hash, log index) pair on the ledger.

  api     — serves read-only queries.  Each log line should say which
            HTTP request it belongs to.

Both kinds of context live in ContextVars defined here (set by
`bind_event_context` below and by the RequestContextMiddleware) and are
copied onto every LogRecord by a single filter on the stdout handler.

WHY TWO FORMATTERS
--------------------
  _ContainerFormatter — human-readable, single-line, for local dev.

  _JsonFormatter — machine-parseable, one JSON object per line, for
    production log pipelines.  Context fields become top-level keys, so
    "every warning for block 1234567" is a filter, not a regex.

    Set LOG_JSON=true in production to switch to JSON output.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# ---------------------------------------------------------------------------
# Request context (api side)
# ---------------------------------------------------------------------------

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# ---------------------------------------------------------------------------
# Event context (worker side)
# ---------------------------------------------------------------------------

event_id_var: ContextVar[str | None] = ContextVar("event_id", default=None)
contract_var: ContextVar[str | None] = ContextVar("contract", default=None)
event_name_var: ContextVar[str | None] = ContextVar("event_name", default=None)
block_number_var: ContextVar[int | None] = ContextVar("block_number", default=None)


@contextmanager
def bind_event_context(
    *, event_id: str, contract: str, event_name: str, block_number: int
) -> Iterator[None]:
    """Attach ledger event identity to every log line emitted inside the block."""
    tokens = (
        event_id_var.set(event_id),
        contract_var.set(contract),
        event_name_var.set(event_name),
        block_number_var.set(block_number),
    )
    try:
        yield
    finally:
        block_number_var.reset(tokens[3])
        event_name_var.reset(tokens[2])
        contract_var.reset(tokens[1])
        event_id_var.reset(tokens[0])


class _ContextFilter(logging.Filter):
    """Copy the current request and event context onto the LogRecord.

    Explicit `extra=` values win over the ContextVars so callers can log
    about a different event than the one currently being processed.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for attr, var in (
            ("request_id", request_id_var),
            ("event_id", event_id_var),
            ("contract", contract_var),
            ("event_name", event_name_var),
            ("block_number", block_number_var),
        ):
            if getattr(record, attr, None) is None:
                setattr(record, attr, var.get())
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for container stdout.

    - Always: ISO-8601 timestamp, level, logger name, message
    - Inside a request: appends [req <id>]
    - While an event is being processed: appends {contract.Event@block}
    - WARNING+: appends [filename:lineno] so you can locate the guard clause
    - ERROR/CRITICAL: stack trace included when exc_info is present
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Insert .NNN before the timezone offset (last 5 chars: +0000)
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        fmt = self._BASE_FMT
        if getattr(record, "request_id", None):
            fmt += "  [req %(request_id)s]"
        if getattr(record, "event_name", None):
            fmt += "  {%(contract)s.%(event_name)s@%(block_number)s}"
        if record.levelno >= logging.WARNING:
            fmt += self._LOC_SUFFIX
        self._style._fmt = fmt
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON formatter for machine-parseable log output (JSON Lines)."""

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "event_id",
        "contract",
        "event_name",
        "block_number",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure root logger for container environments.

    - Sends everything to stdout (Docker captures stdout/stderr)
    - Applies the appropriate formatter based on json_format
    - Injects the request and event context into every record
    - Quiets noisy third-party loggers
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(_ContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "sqlalchemy.engine",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
