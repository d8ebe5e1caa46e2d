"""Completion bookkeeping shared by the catalog and progress handlers.

    percentage = floor(sections_completed * 100 / course.sections_count)

The numerator moves on progress events, the denominator on structural
course edits.  Whenever the denominator moves, every enrollment of the
course is recomputed (the completion recompute cascade): a new section
can push a finished student back below 100%, a deleted one can finish a
student who had done everything else.

The cascade walks CourseEnrollmentIndex, so it costs one read per
enrollment of the edited course and nothing for any other course.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ledger_indexer.core.units import percent_floor, ratio_percent
from ledger_indexer.models.base import BlockRef
from ledger_indexer.models.course import Course
from ledger_indexer.models.enrollment import Enrollment, enrollment_status
from ledger_indexer.repos import accessors
from ledger_indexer.repos.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def set_completed(
    uow: UnitOfWork, enrollment: Enrollment, completed: bool, at: BlockRef
) -> Enrollment:
    """Flip an enrollment's completion flag and the counters that mirror it.

    A no-op flip touches no counter, which is what makes redelivered
    CourseCompleted / ProgressReset events harmless.
    """
    if enrollment.is_completed == completed:
        return enrollment

    updated = replace(
        enrollment,
        is_completed=completed,
        completion_date=at.timestamp if completed else 0,
        status=enrollment_status(is_active=enrollment.is_active, is_completed=completed),
        last_activity_at=at.timestamp,
        last_tx_hash=at.tx_hash,
    )
    uow.put(updated)

    step = 1 if completed else -1
    course = uow.get(Course, enrollment.course_id)
    if course is not None:
        done = max(course.completed_students + step, 0)
        uow.put(
            replace(
                course,
                completed_students=done,
                completion_rate=ratio_percent(done, course.total_enrollments),
                updated_at=at.timestamp,
            )
        )

    student = accessors.profile(uow, enrollment.student, at)
    uow.put(
        accessors.touch_profile(
            student, at, courses_completed=max(student.courses_completed + step, 0)
        )
    )
    return updated


def recompute(
    uow: UnitOfWork, enrollment: Enrollment, total_sections: int, at: BlockRef
) -> Enrollment:
    """Re-derive percentage and completion of one enrollment against `total_sections`.

    A course with no live sections leaves the enrollment as it was: there
    is nothing to measure against, and a student who finished the course
    keeps both the completion and the percentage they reached.
    """
    if total_sections <= 0:
        return enrollment
    done = min(enrollment.sections_completed, total_sections)
    updated = replace(
        enrollment,
        sections_completed=done,
        completion_percentage=percent_floor(done, total_sections),
    )
    if updated != enrollment:
        uow.put(updated)
    return set_completed(uow, updated, done >= total_sections, at)


def cascade(uow: UnitOfWork, course_id: str, at: BlockRef) -> int:
    """Recompute every enrollment of a course after its section count changed.

    The course must already be staged with its new `sections_count`.
    Returns the number of enrollments visited.
    """
    course = uow.get(Course, course_id)
    if course is None:
        return 0
    index = accessors.enrollment_index(uow, course_id)
    for enrollment_id in index.enrollment_ids:
        enrollment = uow.get(Enrollment, enrollment_id)
        if enrollment is None:
            logger.warning(
                "Enrollment %s listed for course %s but not stored",
                enrollment_id,
                course_id,
            )
            continue
        recompute(uow, enrollment, course.sections_count, at)
    if index.enrollment_ids:
        logger.debug(
            "Recomputed %d enrollments of course %s against %d sections",
            len(index.enrollment_ids),
            course_id,
            course.sections_count,
        )
    return len(index.enrollment_ids)
