"""Event-processing pipeline.

One event, one transaction
----------------------------
`Indexer.process` runs a single ledger event to completion:

  1. look up the registered handler      (none -> "unhandled", ignored)
  2. check the ProcessedEvent marker     (present -> "duplicate", no-op)
  3. validate the payload                (bad -> EventSchemaError when strict,
                                           else "invalid", skipped)
  4. run the handler against a UnitOfWork
  5. stage network counters, the marker and the cursor
  6. commit everything with one EntityStore.save_all

The marker is committed together with the event's own effects, so a
redelivered event either finds the marker (and changes nothing) or finds
none of the effects either.  This is what makes at-least-once delivery
safe for every financial aggregate.

Deferral
---------
Four contracts emit four independent streams; the indexer may see a
certificate addition before the license it refers to.  A handler that
finds a causal parent missing raises DependencyMissing.  The handler's
writes are dropped and no marker is written.  Instead the event itself
is stored as a DeferredEvent, committed together with the cursor, and
waits until `replay_deferred` succeeds with it.  The commit that applies
it marks the DeferredEvent resolved.  A new Indexer over the same store
picks the unresolved ones back up.  Nothing is guessed.

Any other exception propagates after the unit of work was discarded.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from pydantic import ValidationError

from ledger_indexer.core.config import SETTINGS, Settings
from ledger_indexer.core.logging import bind_event_context
from ledger_indexer.core.metrics import (
    DEFERRED_EVENTS,
    EVENTS_PROCESSED,
    HANDLER_DURATION,
    LAST_BLOCK,
    MISSING_DEPENDENCY,
)
from ledger_indexer.models.activity import DeferredEvent, ProcessedEvent
from ledger_indexer.models.events import EventSchemaError, LedgerEvent
from ledger_indexer.models.stats import IndexerCursor
from ledger_indexer.repos import accessors
from ledger_indexer.repos.accessors import DependencyMissing
from ledger_indexer.repos.entity_store import EntityStore
from ledger_indexer.repos.store import entity_store
from ledger_indexer.repos.unit_of_work import UnitOfWork
from ledger_indexer.services import aggregates
from ledger_indexer.services.chain_reader import ChainReader, chain_reader
from ledger_indexer.services.registry import HANDLERS, HandlerContext

# Handler groups register themselves on import.
from ledger_indexer.services import catalog, certificate, enrollment, progress  # noqa: F401

logger = logging.getLogger(__name__)

APPLIED = "applied"
DUPLICATE = "duplicate"
DEFERRED = "deferred"
UNHANDLED = "unhandled"
INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class ProcessResult:
    outcome: str
    touched: tuple[tuple[str, str], ...] = ()
    missing: str | None = None


@dataclass
class RunSummary:
    outcomes: dict[str, int] = field(default_factory=dict)
    touched: set[tuple[str, str]] = field(default_factory=set)

    def add(self, result: ProcessResult) -> None:
        self.outcomes[result.outcome] = self.outcomes.get(result.outcome, 0) + 1
        self.touched.update(result.touched)


class Indexer:
    def __init__(
        self,
        store: EntityStore,
        *,
        chain: ChainReader,
        settings: Settings = SETTINGS,
    ) -> None:
        self._store = store
        self._chain = chain
        self._settings = settings
        # Loaded from the store on first use, so importing the module
        # singleton never touches the database.
        self._deferred: dict[str, LedgerEvent] | None = None

    @property
    def deferred(self) -> list[LedgerEvent]:
        return sorted(self._waiting().values(), key=lambda e: e.ordering_key)

    def reset(self) -> None:
        """Forget the in-process deferred set; the next use reloads it."""
        self._deferred = None
        DEFERRED_EVENTS.set(0)

    def _waiting(self) -> dict[str, LedgerEvent]:
        if self._deferred is None:
            self._deferred = {
                row.id: LedgerEvent.model_validate_json(row.event)
                for row in self._store.list(DeferredEvent.KIND)
                if not row.resolved
            }
            DEFERRED_EVENTS.set(len(self._deferred))
            if self._deferred:
                logger.info("Resuming %d deferred events", len(self._deferred))
        return self._deferred

    def process(self, event: LedgerEvent) -> ProcessResult:
        registration = HANDLERS.get((event.contract, event.name))
        if registration is None:
            logger.info("No handler for %s.%s; ignoring", event.contract, event.name)
            EVENTS_PROCESSED.labels(event.contract, event.name, UNHANDLED).inc()
            return ProcessResult(UNHANDLED)

        uow = UnitOfWork(self._store)
        with bind_event_context(
            event_id=event.event_id,
            contract=event.contract,
            event_name=event.name,
            block_number=event.block_number,
        ):
            if uow.get(ProcessedEvent, event.event_id) is not None:
                logger.debug("Event %s already applied", event.event_id)
                self._forget(event)
                EVENTS_PROCESSED.labels(event.contract, event.name, DUPLICATE).inc()
                return ProcessResult(DUPLICATE)

            try:
                payload = registration.params_model.model_validate(event.params)
            except ValidationError as exc:
                if self._settings.strict_schema:
                    raise EventSchemaError(event.contract, event.name, str(exc)) from exc
                logger.warning("Skipping event with malformed payload: %s", exc)
                EVENTS_PROCESSED.labels(event.contract, event.name, INVALID).inc()
                return ProcessResult(INVALID)

            cursor = accessors.cursor(uow)
            if event.ordering_key < cursor.position:
                logger.info(
                    "Event %s is behind the cursor %s; applying as a replay",
                    event.ordering_key,
                    cursor.position,
                )

            start = time.perf_counter()
            ctx = HandlerContext(
                event=event, uow=uow, chain=self._chain, settings=self._settings
            )
            try:
                registration.handler(ctx, payload)
            except DependencyMissing as exc:
                uow.discard()
                return self._defer(event, exc, uow, cursor)
            except Exception:
                uow.discard()
                raise

            aggregates.record_network_activity(uow, event)
            uow.put(
                ProcessedEvent(
                    id=event.event_id,
                    contract=event.contract,
                    name=event.name,
                    block_number=event.block_number,
                    log_index=event.log_index,
                )
            )
            waiting = uow.get(DeferredEvent, event.event_id)
            if waiting is not None and not waiting.resolved:
                uow.put(replace(waiting, resolved=True))
            _advance_cursor(uow, event, cursor)
            touched = uow.commit()
            HANDLER_DURATION.labels(event.contract).observe(time.perf_counter() - start)

            self._forget(event)
            EVENTS_PROCESSED.labels(event.contract, event.name, APPLIED).inc()
            logger.debug("Applied event, %d entities written", len(touched))
            return ProcessResult(APPLIED, tuple(touched))

    def _defer(
        self,
        event: LedgerEvent,
        exc: DependencyMissing,
        uow: UnitOfWork,
        cursor: IndexerCursor,
    ) -> ProcessResult:
        missing = f"{exc.kind}:{exc.entity_id}"
        waiting = self._waiting()
        if event.event_id in waiting:
            logger.debug("Still waiting: %s", exc)
            return ProcessResult(DEFERRED, missing=missing)

        logger.warning("Deferring event: %s", exc)
        uow.put(
            DeferredEvent(
                id=event.event_id,
                event=event.model_dump_json(by_alias=True),
                missing=missing,
            )
        )
        _advance_cursor(uow, event, cursor)
        touched = uow.commit()
        MISSING_DEPENDENCY.labels(event.name).inc()
        EVENTS_PROCESSED.labels(event.contract, event.name, DEFERRED).inc()
        waiting[event.event_id] = event
        DEFERRED_EVENTS.set(len(waiting))
        return ProcessResult(DEFERRED, tuple(touched), missing=missing)

    def _forget(self, event: LedgerEvent) -> None:
        waiting = self._waiting()
        if waiting.pop(event.event_id, None) is not None:
            DEFERRED_EVENTS.set(len(waiting))

    def replay_deferred(self) -> list[ProcessResult]:
        """Retry deferred events in ledger order until a pass makes no progress."""
        results: list[ProcessResult] = []
        progress = True
        while progress and self._waiting():
            progress = False
            for event in self.deferred:
                result = self.process(event)
                if result.outcome != DEFERRED:
                    progress = True
                    results.append(result)
        if results:
            logger.info(
                "Replayed %d deferred events, %d still waiting",
                len(results),
                len(self._waiting()),
            )
        return results

    def run(self, events: Iterable[LedgerEvent]) -> RunSummary:
        """Process a stream, retrying deferred events after each applied one."""
        summary = RunSummary()
        for event in events:
            result = self.process(event)
            summary.add(result)
            if result.outcome == APPLIED and self._waiting():
                for replayed in self.replay_deferred():
                    summary.add(replayed)
        return summary


def _advance_cursor(uow: UnitOfWork, event: LedgerEvent, cursor: IndexerCursor) -> None:
    if event.ordering_key > cursor.position:
        uow.put(
            IndexerCursor(
                block_number=event.block_number,
                transaction_index=event.transaction_index,
                log_index=event.log_index,
            )
        )
        LAST_BLOCK.set(event.block_number)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

indexer = Indexer(entity_store, chain=chain_reader)
