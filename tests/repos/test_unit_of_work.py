from __future__ import annotations

import pytest

from ledger_indexer.models.base import BlockRef
from ledger_indexer.models.course import Course
from ledger_indexer.models.stats import PlatformStats
from ledger_indexer.models.user import UserProfile
from ledger_indexer.repos import accessors
from ledger_indexer.repos.accessors import DependencyMissing, require
from ledger_indexer.repos.entity_store import InMemoryEntityStore
from ledger_indexer.repos.unit_of_work import UnitOfWork

AT = BlockRef(timestamp=1_700_000_000, block_number=100, tx_hash="0xabc")
ALICE = "0x" + "1" * 40


def test_reads_see_staged_writes_before_commit() -> None:
    store = InMemoryEntityStore()
    uow = UnitOfWork(store)
    course = Course(id="1", creator=ALICE)
    uow.put(course)

    assert uow.get(Course, "1") == course
    assert store.get(Course.KIND, "1") is None


def test_commit_writes_and_reports_keys() -> None:
    store = InMemoryEntityStore()
    uow = UnitOfWork(store)
    uow.put_all(Course(id="1", creator=ALICE), PlatformStats(total_courses=1))

    keys = uow.commit()

    assert keys == [("Course", "1"), ("PlatformStats", "platform")]
    assert store.get(Course.KIND, "1") is not None
    assert uow.touched == []


def test_discard_drops_staged_writes() -> None:
    store = InMemoryEntityStore()
    uow = UnitOfWork(store)
    uow.put(Course(id="1", creator=ALICE))
    uow.discard()
    assert uow.commit() == []
    assert store.get(Course.KIND, "1") is None


def test_require_raises_dependency_missing() -> None:
    uow = UnitOfWork(InMemoryEntityStore())
    with pytest.raises(DependencyMissing) as excinfo:
        require(uow, Course, "9")
    assert excinfo.value.kind == "Course"
    assert excinfo.value.entity_id == "9"


def test_profile_is_created_and_counted_once() -> None:
    uow = UnitOfWork(InMemoryEntityStore())
    first = accessors.profile(uow, ALICE, AT)
    second = accessors.profile(uow, ALICE, AT)

    assert first == second
    assert first.created_at == AT.timestamp
    assert uow.get(UserProfile, ALICE) is not None
    assert accessors.platform_stats(uow).total_users == 1


def test_teacher_student_reports_creation() -> None:
    uow = UnitOfWork(InMemoryEntityStore())
    relationship, created = accessors.teacher_student(uow, ALICE, "0x" + "2" * 40, AT)
    assert created
    uow.put(relationship)
    _, created_again = accessors.teacher_student(uow, ALICE, "0x" + "2" * 40, AT)
    assert not created_again
