"""Event-processing worker.

RUN:
  python -m ledger_indexer.worker                  consume the Redis queue
  python -m ledger_indexer.worker --file ev.jsonl  replay a JSON Lines file
  python -m ledger_indexer.worker --file -         replay stdin
  python -m ledger_indexer.worker --publish ev.jsonl   push a file onto the queue

Same image as the API, different command:
  api:     uvicorn ledger_indexer.main:app --host 0.0.0.0 --port 8000
  worker:  python -m ledger_indexer.worker

Events are applied strictly one at a time, in the order they arrive.
After every applied event the deferred set is retried, so an event that
arrived before its causal parent lands as soon as the parent does.

An exception other than a missing dependency stops the worker: skipping
the event would silently diverge the entity graph from the ledger.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from ledger_indexer.core.config import SETTINGS
from ledger_indexer.core.logging import setup_logging
from ledger_indexer.services import cache
from ledger_indexer.services.cache import cache_service
from ledger_indexer.services.event_queue import EventQueue, event_queue, read_events
from ledger_indexer.services.indexer import APPLIED, Indexer, indexer

logger = logging.getLogger("ledger_indexer.worker")


def replay_file(path: str, target: Indexer) -> int:
    if path == "-":
        summary = target.run(read_events(sys.stdin))
    else:
        with open(path, encoding="utf-8") as f:
            summary = target.run(read_events(f))
    asyncio.run(cache.invalidate(cache_service, summary.touched))
    logger.info("Replay finished: %s", summary.outcomes)
    for event in target.deferred:
        logger.warning(
            "Still deferred at end of input: %s.%s %s",
            event.contract,
            event.name,
            event.event_id,
        )
    return 0


async def publish_file(path: str, queue: EventQueue, queue_name: str) -> int:
    count = 0
    with open(path, encoding="utf-8") as f:
        for event in read_events(f):
            await queue.publish(queue_name, event)
            count += 1
    logger.info("Published %d events to %s", count, queue_name)
    return 0


async def consume(
    queue: EventQueue, queue_name: str, target: Indexer, *, max_events: int | None = None
) -> int:
    """Pop and apply events until `max_events` were handled (forever when None)."""
    logger.info("Worker started, consuming queue %s", queue_name)
    handled = 0
    while max_events is None or handled < max_events:
        event = await queue.consume(queue_name, timeout=1)
        if event is None:
            if max_events is not None:
                break
            continue
        handled += 1
        try:
            # Store and gateway calls block; keep them off the event loop.
            result = await asyncio.to_thread(target.process, event)
            touched = set(result.touched)
            if result.outcome == APPLIED and target.deferred:
                for replayed in await asyncio.to_thread(target.replay_deferred):
                    touched.update(replayed.touched)
        except Exception:
            logger.exception("Stopping on event %s", event.event_id)
            raise
        await cache.invalidate(cache_service, touched)
    return handled


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="ledger_indexer.worker")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--file", help="replay a JSON Lines event file ('-' for stdin)")
    source.add_argument("--publish", help="push a JSON Lines event file onto the queue")
    parser.add_argument("--queue", default=SETTINGS.events_queue)
    args = parser.parse_args(argv)

    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

    if args.file:
        return replay_file(args.file, indexer)
    if args.publish:
        return asyncio.run(publish_file(args.publish, event_queue, args.queue))
    asyncio.run(consume(event_queue, args.queue, indexer))
    return 0


if __name__ == "__main__":
    sys.exit(main())
