from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_BASIS_POINTS_MAX = 10_000


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _parse_bps(name: str, raw: str) -> int:
    try:
        bps = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if not 0 <= bps <= _BASIS_POINTS_MAX:
        raise ValueError(f"{name} must be within 0..{_BASIS_POINTS_MAX} (got {bps})")
    return bps


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    chain_reader_url: str | None
    chain_reader_timeout: float
    license_fee_bps: int
    certificate_first_fee_bps: int
    certificate_additional_fee_bps: int
    strict_schema: bool
    events_file: str | None
    events_queue: str

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    timeout_raw = _getenv("CHAIN_READER_TIMEOUT", "5")
    try:
        chain_reader_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"CHAIN_READER_TIMEOUT must be a number (got {timeout_raw!r})"
        ) from None
    if chain_reader_timeout <= 0:
        raise ValueError(
            f"CHAIN_READER_TIMEOUT must be positive (got {chain_reader_timeout})"
        )

    # Schema drift halts the stream everywhere except production, where one
    # cosmetic enum mismatch must not stall all downstream indexing.
    strict_default = "false" if app_env_raw == "prod" else "true"
    strict_schema = _parse_bool(
        "STRICT_SCHEMA", _getenv("STRICT_SCHEMA", strict_default)
    )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_parse_bool("LOG_JSON", _getenv("LOG_JSON", "false")),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        chain_reader_url=_getenv("CHAIN_READER_URL", "") or None,
        chain_reader_timeout=chain_reader_timeout,
        license_fee_bps=_parse_bps("LICENSE_FEE_BPS", _getenv("LICENSE_FEE_BPS", "200")),
        certificate_first_fee_bps=_parse_bps(
            "CERTIFICATE_FIRST_FEE_BPS", _getenv("CERTIFICATE_FIRST_FEE_BPS", "1000")
        ),
        certificate_additional_fee_bps=_parse_bps(
            "CERTIFICATE_ADDITIONAL_FEE_BPS",
            _getenv("CERTIFICATE_ADDITIONAL_FEE_BPS", "200"),
        ),
        strict_schema=strict_schema,
        events_file=_getenv("EVENTS_FILE", "") or None,
        events_queue=_getenv("EVENTS_QUEUE", "ledger_events") or "ledger_events",
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
