from __future__ import annotations

import asyncio
import io

import pytest
from pydantic import ValidationError

from ledger_indexer.services.event_queue import InMemoryEventQueue, read_events
from tests.conftest import course_created, section_added


def test_queue_is_fifo() -> None:
    queue = InMemoryEventQueue()
    first, second = course_created(), section_added(1, 0)

    async def roundtrip():
        await queue.publish("ledger", first)
        await queue.publish("ledger", second)
        length = await queue.queue_length("ledger")
        return length, await queue.consume("ledger"), await queue.consume("ledger")

    length, a, b = asyncio.run(roundtrip())
    assert length == 2
    assert (a, b) == (first, second)


def test_consume_from_empty_queue_returns_none() -> None:
    assert asyncio.run(InMemoryEventQueue().consume("ledger")) is None


def test_read_events_parses_json_lines_and_skips_blanks() -> None:
    event = course_created()
    stream = io.StringIO(
        event.model_dump_json(by_alias=True) + "\n\n" + event.model_dump_json() + "\n"
    )
    parsed = list(read_events(stream))
    assert parsed == [event, event]


def test_read_events_stops_on_malformed_line(caplog: pytest.LogCaptureFixture) -> None:
    stream = io.StringIO(course_created().model_dump_json() + "\n{not json}\n")
    events = read_events(stream)
    next(events)
    with pytest.raises(ValidationError):
        next(events)
    assert "line 2" in caplog.text
