"""Both EntityStore implementations must behave the same.

The SQL store runs against in-memory SQLite; StaticPool keeps the one
connection (and therefore the database) alive across sessions.
"""

from __future__ import annotations

from collections.abc import Iterator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from ledger_indexer.db import tables  # noqa: F401  (registers the table)
from ledger_indexer.db.engine import Base, make_session_factory
from ledger_indexer.models.course import Course, CourseSectionIndex
from ledger_indexer.models.stats import PlatformStats
from ledger_indexer.repos.entity_store import EntityStore, InMemoryEntityStore
from ledger_indexer.repos.sql_entity_store import SqlEntityStore


@pytest.fixture(params=["memory", "sql"])
def store(request: pytest.FixtureRequest) -> Iterator[EntityStore]:
    if request.param == "memory":
        yield InMemoryEntityStore()
        return
    engine = create_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield SqlEntityStore(make_session_factory(engine))
    engine.dispose()


def _course(course_id: str, **changes: object) -> Course:
    return Course(id=course_id, creator="0x" + "c" * 40, **changes)


def test_get_missing_returns_none(store: EntityStore) -> None:
    assert store.get(Course.KIND, "1") is None


def test_save_all_then_get(store: EntityStore) -> None:
    course = _course(
        "1",
        total_revenue=2**255,
        average_rating=Decimal("4.5"),
        completion_rate=Decimal("33.3333"),
    )
    store.save_all([course])
    assert store.get(Course.KIND, "1") == course


def test_save_all_overwrites(store: EntityStore) -> None:
    store.save_all([_course("1", title="old")])
    store.save_all([_course("1", title="new")])
    assert store.get(Course.KIND, "1").title == "new"
    assert len(store.list(Course.KIND)) == 1


def test_list_is_scoped_to_kind(store: EntityStore) -> None:
    store.save_all(
        [
            _course("1"),
            _course("2"),
            CourseSectionIndex(id="1", section_ids=(0, 1)),
            PlatformStats(total_courses=2),
        ]
    )
    assert {c.id for c in store.list(Course.KIND)} == {"1", "2"}
    assert store.list(CourseSectionIndex.KIND) == [
        CourseSectionIndex(id="1", section_ids=(0, 1))
    ]


def test_clear(store: EntityStore) -> None:
    store.save_all([_course("1"), PlatformStats()])
    store.clear()
    assert store.list(Course.KIND) == []
    assert store.get(PlatformStats.KIND, "platform") is None


def test_failed_batch_writes_nothing(store: EntityStore) -> None:
    def batch():
        yield _course("1")
        raise RuntimeError("handler blew up mid-batch")

    with pytest.raises(RuntimeError):
        store.save_all(batch())
    assert store.get(Course.KIND, "1") is None
