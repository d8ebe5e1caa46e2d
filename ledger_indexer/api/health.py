"""Health and readiness endpoints.

  /health (liveness)   "Is this process alive?"  Always 200; the body's
                       `status` says whether a dependency is impaired.
  /ready  (readiness)  "Can this instance answer queries right now?"
                       503 when the configured database is unreachable,
                       which takes the instance out of rotation without
                       restarting it.

Redis is never critical: every cache read degrades to a store read.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ledger_indexer.db.engine import engine
from ledger_indexer.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _database_check() -> str:
    if engine is None:
        return "not_configured"
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _redis_check() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except RedisError:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {"database": _database_check(), "redis": await _redis_check()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
def ready() -> Response:
    if _database_check() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
