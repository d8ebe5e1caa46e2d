from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ledger_indexer.api.certificates import router as certificates_router
from ledger_indexer.api.courses import router as courses_router
from ledger_indexer.api.enrollments import router as enrollments_router
from ledger_indexer.api.health import router as health_router
from ledger_indexer.api.metrics_endpoint import router as metrics_router
from ledger_indexer.api.stats import router as stats_router
from ledger_indexer.api.users import router as users_router
from ledger_indexer.core.config import SETTINGS
from ledger_indexer.core.logging import setup_logging
from ledger_indexer.db.engine import lifespan_db
from ledger_indexer.db.redis import lifespan_redis
from ledger_indexer.middleware.metrics import MetricsMiddleware
from ledger_indexer.middleware.request_context import RequestContextMiddleware
from ledger_indexer.services import cache
from ledger_indexer.services.cache import cache_service
from ledger_indexer.services.event_queue import read_events
from ledger_indexer.services.indexer import RunSummary, indexer

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


def _run_events_file(path: str) -> RunSummary:
    with open(path, encoding="utf-8") as f:
        return indexer.run(read_events(f))


async def replay_events_file(path: str) -> None:
    """Apply a JSON Lines event file to the store before serving queries."""
    summary = await asyncio.to_thread(_run_events_file, path)
    await cache.invalidate(cache_service, summary.touched)
    logger.info(
        "Replayed %s: %s, %d deferred",
        path,
        summary.outcomes,
        len(indexer.deferred),
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            if SETTINGS.events_file:
                await replay_events_file(SETTINGS.events_file)
            yield


app = FastAPI(
    title="ledger-indexer",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext -> Metrics -> route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(users_router)
app.include_router(certificates_router)
app.include_router(stats_router)

logger.info(
    "ledger-indexer api started  env=%s log_level=%s port=%d store=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "sql" if SETTINGS.database_url else "memory",
    "on" if SETTINGS.is_dev else "off",
)
