"""Entity <-> JSON record conversion for the SQL store.

Integers stay integers (uint256 totals do not fit a float), Decimal
values travel as strings, tuples as lists.  Unknown keys in a stored
record are ignored and missing ones take the dataclass default, so a
field added to an entity does not need a data migration.
"""

from __future__ import annotations

import dataclasses
import typing
from decimal import Decimal
from functools import cache
from typing import Any

from ledger_indexer.models.activity import ActivityEvent, DeferredEvent, ProcessedEvent
from ledger_indexer.models.certificate import Certificate, CertificateCourse
from ledger_indexer.models.course import (
    Course,
    CourseEnrollmentIndex,
    CourseSection,
    CourseSectionIndex,
)
from ledger_indexer.models.enrollment import Enrollment, StudentCourseEnrollment
from ledger_indexer.models.stats import IndexerCursor, NetworkStats, PlatformStats
from ledger_indexer.models.user import TeacherStudent, UserProfile

ENTITY_TYPES: dict[str, type] = {
    cls.KIND: cls
    for cls in (
        Course,
        CourseSection,
        CourseSectionIndex,
        CourseEnrollmentIndex,
        UserProfile,
        TeacherStudent,
        Enrollment,
        StudentCourseEnrollment,
        Certificate,
        CertificateCourse,
        ActivityEvent,
        ProcessedEvent,
        DeferredEvent,
        NetworkStats,
        PlatformStats,
        IndexerCursor,
    )
}


def _to_json(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, tuple):
        return [_to_json(v) for v in value]
    return value


def to_record(entity: Any) -> dict[str, Any]:
    return {
        f.name: _to_json(getattr(entity, f.name)) for f in dataclasses.fields(entity)
    }


@cache
def _field_types(cls: type) -> dict[str, Any]:
    hints = typing.get_type_hints(cls)
    return {f.name: hints[f.name] for f in dataclasses.fields(cls)}


def _from_json(hint: Any, value: Any) -> Any:
    if value is None:
        return None
    if hint is Decimal:
        return Decimal(value)
    if typing.get_origin(hint) is tuple:
        return tuple(value)
    return value


def from_record(kind: str, data: dict[str, Any]) -> Any:
    try:
        cls = ENTITY_TYPES[kind]
    except KeyError:
        raise ValueError(f"unknown entity kind {kind!r}") from None
    types = _field_types(cls)
    return cls(
        **{name: _from_json(types[name], data[name]) for name in types if name in data}
    )
