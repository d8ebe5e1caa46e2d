"""Progress handler group (ProgressTracker events)."""

from __future__ import annotations

import logging
from dataclasses import replace

from ledger_indexer.core.units import ratio_percent
from ledger_indexer.models import events
from ledger_indexer.models.base import BlockRef
from ledger_indexer.models.course import Course, CourseSection
from ledger_indexer.models.enrollment import Enrollment, StudentCourseEnrollment
from ledger_indexer.repos import accessors
from ledger_indexer.repos.accessors import require
from ledger_indexer.repos.unit_of_work import UnitOfWork
from ledger_indexer.services import activity, completion
from ledger_indexer.services.registry import HandlerContext, handles

logger = logging.getLogger(__name__)

CONTRACT = "ProgressTracker"


def _enrollment(uow: UnitOfWork, student: str, course_id: str) -> Enrollment:
    lookup = require(
        uow, StudentCourseEnrollment, StudentCourseEnrollment.key(student, course_id)
    )
    return require(uow, Enrollment, lookup.enrollment_id)


def _funnel(section: CourseSection, at: BlockRef, *, started: int, completed: int) -> CourseSection:
    dropped = max(started - completed, 0)
    return replace(
        section,
        started_count=started,
        completed_count=completed,
        dropoff_rate=ratio_percent(dropped, started),
        updated_at=at.timestamp,
    )


@handles(CONTRACT, "SectionStarted", events.SectionProgress)
def section_started(ctx: HandlerContext, p: events.SectionProgress) -> None:
    at = ctx.at
    course_id = str(p.course_id)
    section = require(ctx.uow, CourseSection, CourseSection.key(course_id, p.section_id))
    enrollment = _enrollment(ctx.uow, p.student, course_id)
    ctx.uow.put_all(
        _funnel(
            section,
            at,
            started=section.started_count + 1,
            completed=section.completed_count,
        ),
        replace(enrollment, last_activity_at=at.timestamp, last_tx_hash=at.tx_hash),
    )
    activity.record(
        ctx,
        user=p.student,
        type="SECTION_STARTED",
        description=f"Started section '{section.title}'",
        course_id=course_id,
        enrollment_id=enrollment.id,
        metadata={"section_id": p.section_id},
    )


@handles(CONTRACT, "SectionCompleted", events.SectionProgress)
def section_completed(ctx: HandlerContext, p: events.SectionProgress) -> None:
    at = ctx.at
    course_id = str(p.course_id)
    course = require(ctx.uow, Course, course_id)
    section = require(ctx.uow, CourseSection, CourseSection.key(course_id, p.section_id))
    enrollment = _enrollment(ctx.uow, p.student, course_id)

    ctx.uow.put(
        _funnel(
            section,
            at,
            started=section.started_count,
            completed=section.completed_count + 1,
        )
    )
    student = accessors.profile(ctx.uow, p.student, at)
    ctx.uow.put(
        accessors.touch_profile(
            student, at, total_sections_completed=student.total_sections_completed + 1
        )
    )
    # Percentage is measured against the course as it stands now.
    enrollment = completion.recompute(
        ctx.uow,
        replace(
            enrollment,
            sections_completed=enrollment.sections_completed + 1,
            last_activity_at=at.timestamp,
            last_tx_hash=at.tx_hash,
        ),
        course.sections_count,
        at,
    )
    ctx.uow.put(enrollment)
    activity.record(
        ctx,
        user=p.student,
        type="SECTION_COMPLETED",
        description=f"Completed section '{section.title}'",
        course_id=course_id,
        enrollment_id=enrollment.id,
        metadata={
            "section_id": p.section_id,
            "completion_percentage": enrollment.completion_percentage,
        },
    )


@handles(CONTRACT, "CourseCompleted", events.CourseProgress)
def course_completed(ctx: HandlerContext, p: events.CourseProgress) -> None:
    at = ctx.at
    course_id = str(p.course_id)
    course = require(ctx.uow, Course, course_id)
    enrollment = _enrollment(ctx.uow, p.student, course_id)
    snapshot = replace(
        enrollment,
        sections_completed=max(enrollment.sections_completed, course.sections_count),
        completion_percentage=100,
        last_activity_at=at.timestamp,
        last_tx_hash=at.tx_hash,
    )
    ctx.uow.put(snapshot)
    completion.set_completed(ctx.uow, snapshot, True, at)
    activity.record(
        ctx,
        user=p.student,
        type="COURSE_COMPLETED",
        description=f"Completed '{course.title}'",
        course_id=course_id,
        enrollment_id=enrollment.id,
    )


@handles(CONTRACT, "ProgressReset", events.CourseProgress)
def progress_reset(ctx: HandlerContext, p: events.CourseProgress) -> None:
    at = ctx.at
    course_id = str(p.course_id)
    enrollment = _enrollment(ctx.uow, p.student, course_id)
    reset = replace(
        enrollment,
        sections_completed=0,
        completion_percentage=0,
        last_activity_at=at.timestamp,
        last_tx_hash=at.tx_hash,
    )
    ctx.uow.put(reset)
    completion.set_completed(ctx.uow, reset, False, at)
    logger.info("Progress reset for %s on course %s", p.student, course_id)
    activity.record(
        ctx,
        user=p.student,
        type="PROGRESS_RESET",
        description=f"Progress reset on course {course_id}",
        course_id=course_id,
        enrollment_id=enrollment.id,
    )
