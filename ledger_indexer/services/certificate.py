"""Certificate handler group (CertificateManager events).

An owner holds at most one certificate; courses are added to it over
time.  Each addition is priced on a two-tier schedule decided by the
certificate's course count at the moment the event is applied:

  first course       CERTIFICATE_FIRST_FEE_BPS        (default 10%)
  every later one    CERTIFICATE_ADDITIONAL_FEE_BPS   (default 2%)

The configuration events (platform name, base routes, addition fee,
per-course price) record values only; nothing is recomputed from them.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ledger_indexer.core.units import split_fee
from ledger_indexer.models import events
from ledger_indexer.models.certificate import Certificate, CertificateCourse
from ledger_indexer.models.course import Course
from ledger_indexer.models.enrollment import Enrollment, StudentCourseEnrollment
from ledger_indexer.repos import accessors
from ledger_indexer.repos.accessors import require
from ledger_indexer.services import activity, aggregates
from ledger_indexer.services.registry import HandlerContext, handles

logger = logging.getLogger(__name__)

CONTRACT = "CertificateManager"
DEFAULT_PLATFORM_NAME = "EduVerse"


@handles(CONTRACT, "CertificateMinted", events.CertificateMinted)
def certificate_minted(ctx: HandlerContext, p: events.CertificateMinted) -> None:
    at = ctx.at
    token_id = str(p.token_id)
    if ctx.uow.get(Certificate, token_id) is not None:
        logger.warning("Certificate %s already indexed; ignoring re-mint", token_id)
        return

    stats = accessors.platform_stats(ctx.uow)
    details = ctx.chain.certificate_details(token_id)
    if details is not None:
        platform_name, base_route = details.platform_name, details.base_route
    else:
        platform_name = stats.platform_name or DEFAULT_PLATFORM_NAME
        base_route = stats.default_base_route
    ctx.uow.put(
        replace(
            Certificate.new(token_id=token_id, owner=p.owner, at=at),
            recipient_name=p.recipient_name,
            ipfs_cid=p.ipfs_cid,
            payment_receipt_hash=p.payment_receipt_hash,
            platform_name=platform_name,
            base_route=base_route,
        )
    )

    owner = accessors.profile(ctx.uow, p.owner, at)
    ctx.uow.put(
        accessors.touch_profile(
            owner,
            at,
            has_certificate=True,
            certificate_token_id=token_id,
            certificate_name=p.recipient_name,
            certificate_minted_at=at.timestamp,
            certificate_last_updated=at.timestamp,
            total_spent_on_certificates=owner.total_spent_on_certificates + p.price_paid,
            total_spent=owner.total_spent + p.price_paid,
        )
    )
    aggregates.bump_platform(ctx.uow, at, total_certificates=1)
    activity.record(
        ctx,
        user=p.owner,
        type="CERTIFICATE_MINTED",
        description=f"Minted certificate for {p.recipient_name}",
        certificate_id=token_id,
        metadata={"price_paid": p.price_paid},
    )


@handles(CONTRACT, "CourseAddedToCertificate", events.CourseAddedToCertificate)
def course_added_to_certificate(
    ctx: HandlerContext, p: events.CourseAddedToCertificate
) -> None:
    at = ctx.at
    token_id = str(p.token_id)
    course_id = str(p.course_id)
    certificate = require(ctx.uow, Certificate, token_id)
    course = require(ctx.uow, Course, course_id)
    # The license stream may not have delivered the enrollment yet.
    lookup = require(
        ctx.uow, StudentCourseEnrollment, StudentCourseEnrollment.key(p.owner, course_id)
    )
    enrollment = require(ctx.uow, Enrollment, lookup.enrollment_id)

    key = CertificateCourse.key(token_id, course_id)
    if ctx.uow.get(CertificateCourse, key) is not None:
        logger.warning("Course %s already on certificate %s", course_id, token_id)
        return

    is_first = certificate.total_courses == 0
    fee_bps = (
        ctx.settings.certificate_first_fee_bps
        if is_first
        else ctx.settings.certificate_additional_fee_bps
    )
    split = split_fee(p.price_paid, fee_bps)
    ctx.uow.put_all(
        CertificateCourse(
            id=key,
            certificate_id=token_id,
            course_id=course_id,
            enrollment_id=enrollment.id,
            price_paid=split.amount,
            platform_fee=split.platform_fee,
            creator_revenue=split.payee_revenue,
            is_first_course=is_first,
            added_at=at.timestamp,
            tx_hash=at.tx_hash,
            block_number=at.block_number,
        ),
        replace(
            certificate,
            total_courses=certificate.total_courses + 1,
            total_revenue=certificate.total_revenue + split.amount,
            ipfs_cid=p.new_ipfs_cid or certificate.ipfs_cid,
            payment_receipt_hash=p.payment_receipt_hash,
            last_updated=at.timestamp,
        ),
        replace(
            enrollment,
            has_certificate=True,
            certificate_token_id=token_id,
            certificate_added_at=at.timestamp,
            certificate_price=split.amount,
            last_tx_hash=at.tx_hash,
        ),
        replace(
            course,
            certificate_revenue=course.certificate_revenue + split.payee_revenue,
            updated_at=at.timestamp,
        ),
    )

    owner = accessors.profile(ctx.uow, p.owner, at)
    ctx.uow.put(
        accessors.touch_profile(
            owner,
            at,
            total_courses_in_certificate=owner.total_courses_in_certificate + 1,
            certificate_last_updated=at.timestamp,
            total_spent_on_certificates=owner.total_spent_on_certificates + split.amount,
            total_spent=owner.total_spent + split.amount,
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
        user=p.owner,
        type="COURSE_ADDED_TO_CERTIFICATE",
        description=f"Added '{course.title}' to certificate {token_id}",
        course_id=course_id,
        enrollment_id=enrollment.id,
        certificate_id=token_id,
        metadata={"price_paid": split.amount, "fee_bps": fee_bps, "first": is_first},
    )


@handles(CONTRACT, "CertificateUpdated", events.CertificateUpdated)
def certificate_updated(ctx: HandlerContext, p: events.CertificateUpdated) -> None:
    at = ctx.at
    certificate = require(ctx.uow, Certificate, str(p.token_id))
    ctx.uow.put(
        replace(
            certificate,
            ipfs_cid=p.new_ipfs_cid,
            payment_receipt_hash=p.payment_receipt_hash,
            last_updated=at.timestamp,
        )
    )
    owner = accessors.profile(ctx.uow, certificate.owner, at)
    ctx.uow.put(accessors.touch_profile(owner, at, certificate_last_updated=at.timestamp))
    activity.record(
        ctx,
        user=certificate.owner,
        type="CERTIFICATE_UPDATED",
        description=f"Updated certificate {certificate.id}",
        certificate_id=certificate.id,
    )


@handles(CONTRACT, "CertificateRevoked", events.CertificateRevoked)
def certificate_revoked(ctx: HandlerContext, p: events.CertificateRevoked) -> None:
    at = ctx.at
    certificate = require(ctx.uow, Certificate, str(p.token_id))
    ctx.uow.put(
        replace(
            certificate,
            is_valid=False,
            revocation_reason=p.reason,
            revoked_at=at.timestamp,
            last_updated=at.timestamp,
        )
    )
    logger.warning("Certificate %s revoked: %s", certificate.id, p.reason)
    activity.record(
        ctx,
        user=certificate.owner,
        type="CERTIFICATE_REVOKED",
        description=f"Certificate {certificate.id} revoked",
        certificate_id=certificate.id,
        metadata={"reason": p.reason},
    )


@handles(CONTRACT, "CertificatePaymentRecorded", events.CertificatePaymentRecorded)
def certificate_payment_recorded(
    ctx: HandlerContext, p: events.CertificatePaymentRecorded
) -> None:
    certificate = require(ctx.uow, Certificate, str(p.token_id))
    ctx.uow.put(
        replace(
            certificate,
            payment_receipt_hash=p.payment_receipt_hash,
            last_updated=ctx.at.timestamp,
        )
    )
    activity.record(
        ctx,
        user=p.payer,
        type="CERTIFICATE_PAYMENT_RECORDED",
        description=f"Payment recorded for certificate {certificate.id}",
        certificate_id=certificate.id,
        metadata={"receipt": p.payment_receipt_hash},
    )


@handles(CONTRACT, "BaseRouteUpdated", events.BaseRouteUpdated)
def base_route_updated(ctx: HandlerContext, p: events.BaseRouteUpdated) -> None:
    certificate = require(ctx.uow, Certificate, str(p.token_id))
    ctx.uow.put(
        replace(certificate, base_route=p.new_base_route, last_updated=ctx.at.timestamp)
    )
    activity.record(
        ctx,
        user=certificate.owner,
        type="BASE_ROUTE_UPDATED",
        description=f"Base route of certificate {certificate.id} set",
        certificate_id=certificate.id,
        metadata={"base_route": p.new_base_route},
    )


# Platform-wide settings carry no actor; the audit record is not written.


@handles(CONTRACT, "DefaultBaseRouteUpdated", events.DefaultBaseRouteUpdated)
def default_base_route_updated(
    ctx: HandlerContext, p: events.DefaultBaseRouteUpdated
) -> None:
    aggregates.configure_platform(ctx.uow, ctx.at, default_base_route=p.new_base_route)
    logger.info("Default certificate base route set to %s", p.new_base_route)


@handles(CONTRACT, "PlatformNameUpdated", events.PlatformNameUpdated)
def platform_name_updated(ctx: HandlerContext, p: events.PlatformNameUpdated) -> None:
    aggregates.configure_platform(ctx.uow, ctx.at, platform_name=p.new_platform_name)
    logger.info("Platform name set to %s", p.new_platform_name)


@handles(CONTRACT, "CourseAdditionFeeUpdated", events.CourseAdditionFeeUpdated)
def course_addition_fee_updated(
    ctx: HandlerContext, p: events.CourseAdditionFeeUpdated
) -> None:
    aggregates.configure_platform(ctx.uow, ctx.at, course_addition_fee=p.new_fee)
    logger.info("Course addition fee set to %d", p.new_fee)


@handles(CONTRACT, "CourseCertificatePriceSet", events.CourseCertificatePriceSet)
def course_certificate_price_set(
    ctx: HandlerContext, p: events.CourseCertificatePriceSet
) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    ctx.uow.put(
        replace(course, certificate_price=p.price, updated_at=ctx.at.timestamp)
    )
    activity.record(
        ctx,
        user=course.creator,
        type="COURSE_CERTIFICATE_PRICE_SET",
        description=f"Certificate price of '{course.title}' set",
        course_id=course.id,
        metadata={"price": p.price},
    )
