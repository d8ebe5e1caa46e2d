"""Prometheus scrape endpoint.

Serves every metric registered in core.metrics in the text exposition
format.  The API process reports HTTP and cache metrics; when it replays
EVENTS_FILE at startup it also reports the indexer metrics for that run.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
