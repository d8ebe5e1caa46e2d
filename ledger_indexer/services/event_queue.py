"""Ledger event sources: a Redis list queue and JSON Lines replay.

THE PRODUCER/CONSUMER PATTERN
-------------------------------
  Producer (chain listener):  LPUSH event JSON onto a Redis list
  Consumer (worker):          BRPOP from the list -> Indexer.process -> loop

LPUSH adds at the head, BRPOP removes from the tail, so the list is a
FIFO.  Ordering matters here: the listener pushes events in ledger order
and the worker applies them in the order it pops them.

DELIVERY
---------
A worker crash between BRPOP and commit loses the popped event; a
listener restart may push events again.  The second case is harmless
(the ProcessedEvent marker turns redelivery into a no-op).  The first is
covered by re-running the listener from the cursor block: the cursor
only moves in the commit that consumed an event.  An event waiting for
a causal parent is consumed too, into a stored DeferredEvent that the
next worker picks back up.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from ledger_indexer.core.metrics import QUEUE_DEPTH
from ledger_indexer.db.redis import redis_pool
from ledger_indexer.models.events import LedgerEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class EventQueue(Protocol):
    async def publish(self, queue: str, event: LedgerEvent) -> None: ...
    async def consume(self, queue: str, timeout: int = 0) -> LedgerEvent | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryEventQueue:
    """In-memory queue for tests; no Redis needed."""

    def __init__(self) -> None:
        self._queues: dict[str, list[LedgerEvent]] = {}

    async def publish(self, queue: str, event: LedgerEvent) -> None:
        self._queues.setdefault(queue, []).append(event)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(self._queues[queue]))

    async def consume(self, queue: str, timeout: int = 0) -> LedgerEvent | None:
        events = self._queues.get(queue, [])
        if not events:
            return None
        event = events.pop(0)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(events))
        return event

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))


class RedisEventQueue:
    """Redis-backed queue using LPUSH/BRPOP."""

    _PREFIX = "events:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def publish(self, queue: str, event: LedgerEvent) -> None:
        await self._redis.lpush(
            f"{self._PREFIX}{queue}", event.model_dump_json(by_alias=True)
        )

    async def consume(self, queue: str, timeout: int = 5) -> LedgerEvent | None:
        # Blocks up to `timeout` seconds; None when nothing arrived.
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, payload = result
        QUEUE_DEPTH.labels(queue_name=queue).set(await self.queue_length(queue))
        return LedgerEvent.model_validate_json(payload)

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(f"{self._PREFIX}{queue}")


def read_events(lines: Iterable[str]) -> Iterator[LedgerEvent]:
    """Parse a JSON Lines stream of LedgerEvent objects; blank lines are skipped.

    A malformed line logs its line number and raises
    pydantic.ValidationError; the stream is not resumed past it.
    """
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            event = LedgerEvent.model_validate_json(line)
        except ValidationError:
            logger.error("Malformed event on line %d", number)
            raise
        yield event


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    event_queue: EventQueue = RedisEventQueue(redis_pool)
else:
    event_queue = InMemoryEventQueue()
