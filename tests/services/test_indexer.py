"""Pipeline tests: outcomes, idempotence, deferral and atomic commits.

Prometheus counters are global, so assertions on them read the value
before and after the action and compare the delta.
"""

from __future__ import annotations

from dataclasses import replace

import pytest
from prometheus_client import REGISTRY

from ledger_indexer.core.config import SETTINGS
from ledger_indexer.models.activity import ActivityEvent, DeferredEvent, ProcessedEvent
from ledger_indexer.models.certificate import Certificate, CertificateCourse
from ledger_indexer.models.course import Course
from ledger_indexer.models.events import EventSchemaError
from ledger_indexer.models.stats import IndexerCursor, NetworkStats
from ledger_indexer.repos.store import entity_store
from ledger_indexer.services import catalog
from ledger_indexer.services.chain_reader import NullChainReader
from ledger_indexer.services.indexer import (
    APPLIED,
    DEFERRED,
    DUPLICATE,
    INVALID,
    UNHANDLED,
    Indexer,
    indexer,
)
from tests.conftest import (
    apply,
    certificate_minted,
    course_added_to_certificate,
    course_created,
    get,
    license_minted,
    make_event,
    section_added,
)


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def _outcomes(contract: str, event: str, outcome: str) -> float:
    return _get_sample(
        "indexer_events_total",
        {"contract": contract, "event": event, "outcome": outcome},
    )


def test_applied_event_writes_marker_cursor_and_network_stats() -> None:
    event = course_created()
    [result] = apply(event)

    assert result.outcome == APPLIED
    assert ("Course", "1") in result.touched
    marker = get(ProcessedEvent, event.event_id)
    assert marker.name == "CourseCreated"
    cursor = get(IndexerCursor, "cursor")
    assert cursor.block_number == event.block_number
    stats = get(NetworkStats, "network")
    assert stats.total_transactions == 1
    assert stats.total_course_creations == 1
    assert stats.total_gas_used == 50_000
    assert get(ActivityEvent, event.event_id).type == "COURSE_CREATED"


def test_outcome_counter_increments() -> None:
    before = _outcomes("CourseFactory", "CourseCreated", "applied")
    apply(course_created())
    after = _outcomes("CourseFactory", "CourseCreated", "applied")
    assert after - before == 1


def test_redelivery_is_a_duplicate_and_changes_nothing() -> None:
    event = course_created()
    apply(event)
    snapshot = get(NetworkStats, "network")
    before = _outcomes("CourseFactory", "CourseCreated", "duplicate")

    [result] = apply(event)

    assert result.outcome == DUPLICATE
    assert get(NetworkStats, "network") == snapshot
    assert _outcomes("CourseFactory", "CourseCreated", "duplicate") - before == 1


def test_unknown_event_is_unhandled() -> None:
    [result] = apply(make_event("CourseFactory", "SomethingNew", {"x": 1}))
    assert result.outcome == UNHANDLED
    assert entity_store.list(ProcessedEvent.KIND) == []


def test_strict_mode_raises_on_payload_drift() -> None:
    with pytest.raises(EventSchemaError, match="CourseFactory.CourseCreated"):
        apply(make_event("CourseFactory", "CourseCreated", {"courseId": 1}))


def test_lenient_mode_skips_payload_drift() -> None:
    lenient = Indexer(
        entity_store,
        chain=NullChainReader(),
        settings=replace(SETTINGS, strict_schema=False),
    )
    before = _outcomes("CourseFactory", "CourseCreated", "invalid")

    result = lenient.process(make_event("CourseFactory", "CourseCreated", {"courseId": 1}))

    assert result.outcome == INVALID
    assert _outcomes("CourseFactory", "CourseCreated", "invalid") - before == 1
    assert get(Course, "1") is None


def test_lenient_mode_maps_unknown_enum_to_fallback() -> None:
    lenient = Indexer(
        entity_store,
        chain=NullChainReader(),
        settings=replace(SETTINGS, strict_schema=False),
    )
    lenient.process(course_created(category=42, difficulty=9))
    course = get(Course, "1")
    assert course.category == "Other"
    assert course.difficulty == "Unknown"


def test_deferred_event_is_counted_once() -> None:
    event = section_added(3, 0)
    before = _get_sample("indexer_missing_dependency_total", {"event": "SectionAdded"})

    apply(event)
    apply(event)

    after = _get_sample("indexer_missing_dependency_total", {"event": "SectionAdded"})
    assert after - before == 1
    assert _get_sample("indexer_deferred_events") == 1
    assert [e.event_id for e in indexer.deferred] == [event.event_id]


def test_replay_deferred_applies_in_ledger_order() -> None:
    first = section_added(1, 0, 10)
    second = section_added(1, 1, 20)
    assert [r.outcome for r in apply(second, first)] == [DEFERRED, DEFERRED]

    apply(course_created())
    results = indexer.replay_deferred()

    assert [r.outcome for r in results] == [APPLIED, APPLIED]
    assert indexer.deferred == []
    assert get(Course, "1").sections_count == 2
    assert _get_sample("indexer_deferred_events") == 0


def test_run_summarizes_outcomes() -> None:
    mint = license_minted(1)
    summary = indexer.run([mint, course_created(), mint])
    # The mint is deferred, replayed after the course lands, then redelivered.
    assert summary.outcomes == {DEFERRED: 1, APPLIED: 2, DUPLICATE: 1}
    assert ("Enrollment", "1") in summary.touched


def test_failing_handler_leaves_no_partial_writes(monkeypatch: pytest.MonkeyPatch) -> None:
    apply(course_created())
    snapshot = get(Course, "1")

    def explode(*args: object, **kwargs: object) -> int:
        raise RuntimeError("boom")

    monkeypatch.setattr(catalog.completion, "cascade", explode)
    event = section_added(1, 0, 60)
    with pytest.raises(RuntimeError, match="boom"):
        apply(event)

    assert get(Course, "1") == snapshot
    assert get(ProcessedEvent, event.event_id) is None
    assert get(NetworkStats, "network").total_transactions == 1


def test_event_behind_cursor_still_applies() -> None:
    apply(
        course_created(1),
        make_event("CourseFactory", "CourseUnpublished", {"courseId": 1}, block=5_000),
    )
    late = section_added(1, 0).model_copy(update={"block_number": 10})

    [result] = apply(late)

    assert result.outcome == APPLIED
    assert get(Course, "1").sections_count == 1
    assert get(IndexerCursor, "cursor").block_number == 5_000


def test_deferral_is_stored_with_the_cursor() -> None:
    apply(course_created(), certificate_minted(1))
    early = course_added_to_certificate(1, 1)

    [result] = apply(early)

    assert result.outcome == DEFERRED
    waiting = get(DeferredEvent, early.event_id)
    assert waiting.missing.startswith("StudentCourseEnrollment:")
    assert not waiting.resolved
    assert get(IndexerCursor, "cursor").block_number == early.block_number
    assert get(ProcessedEvent, early.event_id) is None


def test_deferred_event_survives_a_restart() -> None:
    apply(course_created(), certificate_minted(1))
    early = course_added_to_certificate(1, 1)
    apply(early)

    restarted = Indexer(entity_store, chain=NullChainReader())
    assert [e.event_id for e in restarted.deferred] == [early.event_id]

    restarted.run([license_minted(1, course_id=1)])

    assert restarted.deferred == []
    assert get(CertificateCourse, CertificateCourse.key(1, 1)) is not None
    assert get(Certificate, "1").total_courses == 1
    assert get(DeferredEvent, early.event_id).resolved


def test_resolved_deferral_is_not_reloaded() -> None:
    early = section_added(1, 0)
    apply(early)
    apply(course_created())
    indexer.replay_deferred()

    restarted = Indexer(entity_store, chain=NullChainReader())

    assert restarted.deferred == []
    assert get(Course, "1").sections_count == 1
