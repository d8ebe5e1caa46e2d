"""Activity projector: one human-readable audit record per business event.

Write-only.  No handler reads ActivityEvent back, so the records can be
reshaped freely without touching any aggregate.
"""

from __future__ import annotations

import json

from ledger_indexer.models.activity import ActivityEvent
from ledger_indexer.repos import accessors
from ledger_indexer.services.registry import HandlerContext


def record(
    ctx: HandlerContext,
    *,
    user: str,
    type: str,
    description: str,
    course_id: str | None = None,
    enrollment_id: str | None = None,
    certificate_id: str | None = None,
    metadata: dict | None = None,
) -> None:
    # The actor always resolves to a profile, creating one if needed.
    accessors.profile(ctx.uow, user, ctx.at)
    ctx.uow.put(
        ActivityEvent(
            id=ctx.event.event_id,
            user=user,
            type=type,
            description=description,
            timestamp=ctx.event.block_timestamp,
            block_number=ctx.event.block_number,
            tx_hash=ctx.event.transaction_hash,
            course_id=course_id,
            enrollment_id=enrollment_id,
            certificate_id=certificate_id,
            metadata=json.dumps(metadata, sort_keys=True, default=str)
            if metadata
            else None,
        )
    )
