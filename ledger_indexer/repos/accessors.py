"""Load-or-create accessors shared by every handler group.

Every read through these helpers yields either a fully initialized
entity (the dataclass defaults are the single place where fields get
their starting values) or an explicit absence: `require` raises
DependencyMissing instead of handing back None for an entity the event
causally depends on.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TypeVar

from ledger_indexer.models.base import BlockRef
from ledger_indexer.models.course import CourseEnrollmentIndex, CourseSectionIndex
from ledger_indexer.models.stats import (
    CURSOR_ID,
    NETWORK_STATS_ID,
    PLATFORM_STATS_ID,
    IndexerCursor,
    NetworkStats,
    PlatformStats,
)
from ledger_indexer.models.user import TeacherStudent, UserProfile
from ledger_indexer.repos.unit_of_work import UnitOfWork

E = TypeVar("E")


class DependencyMissing(LookupError):
    """An entity the event depends on has not been indexed yet."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} {entity_id!r} not indexed yet")
        self.kind = kind
        self.entity_id = entity_id


def require(uow: UnitOfWork, cls: type[E], entity_id: str) -> E:
    entity = uow.get(cls, entity_id)
    if entity is None:
        raise DependencyMissing(cls.KIND, entity_id)  # type: ignore[attr-defined]
    return entity


def platform_stats(uow: UnitOfWork) -> PlatformStats:
    return uow.get(PlatformStats, PLATFORM_STATS_ID) or PlatformStats()


def network_stats(uow: UnitOfWork) -> NetworkStats:
    return uow.get(NetworkStats, NETWORK_STATS_ID) or NetworkStats()


def cursor(uow: UnitOfWork) -> IndexerCursor:
    return uow.get(IndexerCursor, CURSOR_ID) or IndexerCursor()


def profile(uow: UnitOfWork, address: str, at: BlockRef) -> UserProfile:
    """Load a profile, creating (and counting) it on first reference.

    A new profile is staged immediately so a second lookup in the same
    event does not count the user twice.
    """
    existing = uow.get(UserProfile, address)
    if existing is not None:
        return existing
    created = UserProfile.new(address=address, at=at)
    stats = platform_stats(uow)
    uow.put_all(
        created,
        replace(
            stats,
            total_users=stats.total_users + 1,
            last_update_timestamp=at.timestamp,
            last_update_block=at.block_number,
        ),
    )
    return created


def touch_profile(p: UserProfile, at: BlockRef, **changes: object) -> UserProfile:
    return replace(
        p,
        last_activity_at=at.timestamp,
        updated_at=at.timestamp,
        last_tx_hash=at.tx_hash,
        block_number=at.block_number,
        **changes,
    )


def teacher_student(
    uow: UnitOfWork, teacher: str, student: str, at: BlockRef
) -> tuple[TeacherStudent, bool]:
    """Returns (relationship, created)."""
    existing = uow.get(TeacherStudent, TeacherStudent.key(teacher, student))
    if existing is not None:
        return existing, False
    return TeacherStudent.new(teacher=teacher, student=student, at=at), True


def section_index(uow: UnitOfWork, course_id: str) -> CourseSectionIndex:
    return uow.get(CourseSectionIndex, course_id) or CourseSectionIndex(id=course_id)


def enrollment_index(uow: UnitOfWork, course_id: str) -> CourseEnrollmentIndex:
    return uow.get(CourseEnrollmentIndex, course_id) or CourseEnrollmentIndex(
        id=course_id
    )
