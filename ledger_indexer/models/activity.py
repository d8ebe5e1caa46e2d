from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    """Append-only audit record, one per business event.

    Write-only from the handlers' point of view: nothing in the indexer
    reads these back.
    """

    KIND: ClassVar[str] = "ActivityEvent"

    id: str  # "{tx_hash}-{log_index}"
    user: str
    type: str
    description: str
    timestamp: int
    block_number: int
    tx_hash: str
    course_id: str | None = None
    enrollment_id: str | None = None
    certificate_id: str | None = None
    metadata: str | None = None  # JSON


@dataclass(frozen=True, slots=True)
class ProcessedEvent:
    """Marker written in the same commit as an event's effects."""

    KIND: ClassVar[str] = "ProcessedEvent"

    id: str
    contract: str
    name: str
    block_number: int
    log_index: int


@dataclass(frozen=True, slots=True)
class DeferredEvent:
    """A consumed ledger event still waiting for a causal parent.

    Stored so a restarted worker resumes the wait: the cursor has already
    moved past it.  The commit that finally applies the event flips
    `resolved`; the row is never deleted.
    """

    KIND: ClassVar[str] = "DeferredEvent"

    id: str  # event_id
    event: str  # LedgerEvent JSON, by alias
    missing: str  # "{kind}:{id}" of the first parent found missing
    resolved: bool = False
