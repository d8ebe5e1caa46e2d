"""Enrollment handler group (CourseLicense events).

Money moves on mint and renew only.  Both apply the license fee split
(`LICENSE_FEE_BPS`) with integer floor division; the gross payment is
booked on the course and the platform, the creator's share on the
creator profile.  RevenueRecorded is the contract's own audit echo of
those payments and never books anything.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ledger_indexer.core.units import ratio_percent, split_fee
from ledger_indexer.models import events
from ledger_indexer.models.course import Course
from ledger_indexer.models.enrollment import (
    Enrollment,
    StudentCourseEnrollment,
    enrollment_status,
)
from ledger_indexer.repos import accessors
from ledger_indexer.repos.accessors import require
from ledger_indexer.services import activity, aggregates
from ledger_indexer.services.registry import HandlerContext, handles

logger = logging.getLogger(__name__)

CONTRACT = "CourseLicense"


@handles(CONTRACT, "LicenseMinted", events.LicenseMinted)
def license_minted(ctx: HandlerContext, p: events.LicenseMinted) -> None:
    at = ctx.at
    token_id = str(p.token_id)
    if ctx.uow.get(Enrollment, token_id) is not None:
        logger.warning("License %s already indexed; ignoring re-mint", token_id)
        return
    course = require(ctx.uow, Course, str(p.course_id))
    split = split_fee(p.price_paid, ctx.settings.license_fee_bps)

    enrollment = replace(
        Enrollment.new(token_id=token_id, student=p.student, course_id=course.id, at=at),
        duration_months=p.duration_months,
        license_expiry=p.expiry_timestamp,
        price_paid=split.amount,
        platform_fee=split.platform_fee,
        creator_revenue=split.payee_revenue,
        total_spent=split.amount,
    )
    index = accessors.enrollment_index(ctx.uow, course.id)
    total_enrollments = course.total_enrollments + 1
    ctx.uow.put_all(
        enrollment,
        # A repurchase after expiry points the lookup at the newest token.
        StudentCourseEnrollment(
            id=StudentCourseEnrollment.key(p.student, course.id),
            student=p.student,
            course_id=course.id,
            enrollment_id=token_id,
            created_at=at.timestamp,
            tx_hash=at.tx_hash,
        ),
        replace(index, enrollment_ids=(*index.enrollment_ids, token_id)),
        replace(
            course,
            total_enrollments=total_enrollments,
            active_enrollments=course.active_enrollments + 1,
            total_revenue=course.total_revenue + split.amount,
            completion_rate=ratio_percent(course.completed_students, total_enrollments),
            updated_at=at.timestamp,
        ),
    )

    student = accessors.profile(ctx.uow, p.student, at)
    ctx.uow.put(
        accessors.touch_profile(
            student,
            at,
            courses_enrolled=student.courses_enrolled + 1,
            active_enrollments=student.active_enrollments + 1,
            total_spent_on_courses=student.total_spent_on_courses + split.amount,
            total_spent=student.total_spent + split.amount,
            first_enrollment_at=student.first_enrollment_at or at.timestamp,
        )
    )

    # Read the creator after the student write: they may be the same profile.
    relationship, first_purchase = accessors.teacher_student(
        ctx.uow, course.creator, p.student, at
    )
    ctx.uow.put(
        replace(
            relationship,
            total_courses_bought=relationship.total_courses_bought + 1,
            total_spent=relationship.total_spent + split.amount,
            last_activity_date=at.timestamp,
            last_tx_hash=at.tx_hash,
        )
    )
    creator = accessors.profile(ctx.uow, course.creator, at)
    ctx.uow.put(
        replace(
            creator,
            total_revenue=creator.total_revenue + split.payee_revenue,
            total_students=creator.total_students + (1 if first_purchase else 0),
            updated_at=at.timestamp,
        )
    )

    aggregates.bump_platform(
        ctx.uow,
        at,
        total_enrollments=1,
        total_revenue=split.amount,
        platform_fees=split.platform_fee,
        creator_revenue=split.payee_revenue,
    )
    activity.record(
        ctx,
        user=p.student,
        type="LICENSE_MINTED",
        description=f"Enrolled in '{course.title}' for {p.duration_months} month(s)",
        course_id=course.id,
        enrollment_id=token_id,
        metadata={"price_paid": split.amount, "expiry": p.expiry_timestamp},
    )


@handles(CONTRACT, "LicenseRenewed", events.LicenseRenewed)
def license_renewed(ctx: HandlerContext, p: events.LicenseRenewed) -> None:
    at = ctx.at
    enrollment = require(ctx.uow, Enrollment, str(p.token_id))
    course = require(ctx.uow, Course, enrollment.course_id)
    split = split_fee(p.price_paid, ctx.settings.license_fee_bps)
    reactivated = 0 if enrollment.is_active else 1
    if reactivated:
        logger.info("Expired license %s renewed; reactivating", enrollment.id)

    ctx.uow.put_all(
        replace(
            enrollment,
            duration_months=p.duration_months,
            license_expiry=p.expiry_timestamp,
            is_active=True,
            status=enrollment_status(is_active=True, is_completed=enrollment.is_completed),
            total_renewals=enrollment.total_renewals + 1,
            last_renewed_at=at.timestamp,
            total_spent=enrollment.total_spent + split.amount,
            last_activity_at=at.timestamp,
            last_tx_hash=at.tx_hash,
        ),
        replace(
            course,
            total_revenue=course.total_revenue + split.amount,
            active_enrollments=course.active_enrollments + reactivated,
            updated_at=at.timestamp,
        ),
    )

    student = accessors.profile(ctx.uow, enrollment.student, at)
    ctx.uow.put(
        accessors.touch_profile(
            student,
            at,
            active_enrollments=student.active_enrollments + reactivated,
            total_spent_on_courses=student.total_spent_on_courses + split.amount,
            total_spent=student.total_spent + split.amount,
        )
    )
    relationship, _ = accessors.teacher_student(
        ctx.uow, course.creator, enrollment.student, at
    )
    ctx.uow.put(
        replace(
            relationship,
            total_spent=relationship.total_spent + split.amount,
            last_activity_date=at.timestamp,
            last_tx_hash=at.tx_hash,
        )
    )
    creator = accessors.profile(ctx.uow, course.creator, at)
    ctx.uow.put(
        replace(
            creator,
            total_revenue=creator.total_revenue + split.payee_revenue,
            updated_at=at.timestamp,
        )
    )

    aggregates.bump_platform(
        ctx.uow,
        at,
        total_revenue=split.amount,
        platform_fees=split.platform_fee,
        creator_revenue=split.payee_revenue,
    )
    activity.record(
        ctx,
        user=enrollment.student,
        type="LICENSE_RENEWED",
        description=f"Renewed '{course.title}' for {p.duration_months} month(s)",
        course_id=course.id,
        enrollment_id=enrollment.id,
        metadata={"price_paid": split.amount, "expiry": p.expiry_timestamp},
    )


@handles(CONTRACT, "LicenseExpired", events.LicenseExpired)
def license_expired(ctx: HandlerContext, p: events.LicenseExpired) -> None:
    at = ctx.at
    enrollment = require(ctx.uow, Enrollment, str(p.token_id))
    if not enrollment.is_active:
        logger.info("License %s already expired", enrollment.id)
        return

    ctx.uow.put(
        replace(
            enrollment,
            is_active=False,
            status=enrollment_status(is_active=False, is_completed=enrollment.is_completed),
            last_tx_hash=at.tx_hash,
        )
    )
    course = ctx.uow.get(Course, enrollment.course_id)
    if course is not None:
        ctx.uow.put(
            replace(
                course,
                active_enrollments=max(course.active_enrollments - 1, 0),
                updated_at=at.timestamp,
            )
        )
    student = accessors.profile(ctx.uow, enrollment.student, at)
    ctx.uow.put(
        replace(
            student,
            active_enrollments=max(student.active_enrollments - 1, 0),
            updated_at=at.timestamp,
        )
    )
    activity.record(
        ctx,
        user=enrollment.student,
        type="LICENSE_EXPIRED",
        description=f"License {enrollment.id} expired",
        course_id=enrollment.course_id,
        enrollment_id=enrollment.id,
    )


@handles(CONTRACT, "RevenueRecorded", events.RevenueRecorded)
def revenue_recorded(ctx: HandlerContext, p: events.RevenueRecorded) -> None:
    course_id = str(p.course_id)
    course = ctx.uow.get(Course, course_id)
    if course is not None:
        ctx.uow.put(replace(course, updated_at=ctx.at.timestamp))
    activity.record(
        ctx,
        user=p.creator,
        type="REVENUE_RECORDED",
        description=f"Revenue recorded for course {course_id}",
        course_id=course_id,
        metadata={"amount": p.amount},
    )
