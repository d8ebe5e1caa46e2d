from __future__ import annotations

from ledger_indexer.models.certificate import Certificate, CertificateCourse
from ledger_indexer.models.course import Course
from ledger_indexer.models.enrollment import Enrollment
from ledger_indexer.models.stats import PlatformStats
from ledger_indexer.models.user import UserProfile
from ledger_indexer.services.indexer import APPLIED, DEFERRED, indexer
from tests.conftest import (
    CREATOR,
    STUDENT,
    apply,
    certificate_minted,
    course_added_to_certificate,
    course_created,
    get,
    license_minted,
    make_event,
)


def _two_enrolled_courses() -> None:
    apply(
        course_created(1),
        course_created(2),
        license_minted(1, course_id=1),
        license_minted(2, course_id=2),
    )


def test_certificate_mint_uses_platform_fallbacks() -> None:
    apply(certificate_minted(7, price=250))

    certificate = get(Certificate, "7")
    assert certificate.owner == STUDENT
    assert certificate.recipient_name == "Grace Hopper"
    assert certificate.platform_name == "EduVerse"
    assert certificate.base_route == ""
    assert certificate.is_valid

    owner = get(UserProfile, STUDENT)
    assert owner.has_certificate
    assert owner.certificate_token_id == "7"
    assert owner.total_spent_on_certificates == 250
    assert get(PlatformStats, "platform").total_certificates == 1


def test_certificate_mint_picks_up_configured_platform() -> None:
    apply(
        make_event(
            "CertificateManager", "PlatformNameUpdated", {"newPlatformName": "Academy"}
        ),
        make_event(
            "CertificateManager",
            "DefaultBaseRouteUpdated",
            {"newBaseRoute": "https://verify.example/"},
        ),
        certificate_minted(1),
    )
    certificate = get(Certificate, "1")
    assert certificate.platform_name == "Academy"
    assert certificate.base_route == "https://verify.example/"


def test_first_course_pays_first_tier_later_ones_second() -> None:
    _two_enrolled_courses()
    apply(
        certificate_minted(1),
        course_added_to_certificate(1, 1, price=1_000_000),
        course_added_to_certificate(1, 2, price=1_000_000),
    )

    first = get(CertificateCourse, CertificateCourse.key(1, 1))
    assert first.is_first_course
    assert first.platform_fee == 100_000
    assert first.creator_revenue == 900_000

    second = get(CertificateCourse, CertificateCourse.key(1, 2))
    assert not second.is_first_course
    assert second.platform_fee == 20_000
    assert second.creator_revenue == 980_000

    certificate = get(Certificate, "1")
    assert certificate.total_courses == 2
    assert certificate.total_revenue == 2_000_000
    assert certificate.ipfs_cid == "bafycert2"

    assert get(Course, "1").certificate_revenue == 900_000
    enrollment = get(Enrollment, "2")
    assert enrollment.has_certificate
    assert enrollment.certificate_token_id == "1"
    assert enrollment.certificate_price == 1_000_000

    owner = get(UserProfile, STUDENT)
    assert owner.total_courses_in_certificate == 2
    assert owner.total_spent == 2_000_000 + 2_000_000

    # License shares (2 x 980_000) plus certificate shares.
    assert get(UserProfile, CREATOR).total_revenue == 2 * 980_000 + 900_000 + 980_000
    platform = get(PlatformStats, "platform")
    assert platform.platform_fees == 2 * 20_000 + 100_000 + 20_000


def test_adding_same_course_twice_books_once() -> None:
    _two_enrolled_courses()
    apply(
        certificate_minted(1),
        course_added_to_certificate(1, 1),
        course_added_to_certificate(1, 1),
    )
    assert get(Certificate, "1").total_courses == 1
    assert get(Certificate, "1").total_revenue == 1_000_000


def test_addition_before_license_is_deferred_then_replayed() -> None:
    apply(course_created(1), certificate_minted(1))
    [early] = apply(course_added_to_certificate(1, 1))
    assert early.outcome == DEFERRED
    assert get(Certificate, "1").total_courses == 0

    summary = indexer.run([license_minted(1, course_id=1)])

    assert summary.outcomes == {APPLIED: 2}
    assert indexer.deferred == []
    assert get(Certificate, "1").total_courses == 1
    assert get(Enrollment, "1").has_certificate


def test_revocation_keeps_history() -> None:
    _two_enrolled_courses()
    apply(
        certificate_minted(1),
        course_added_to_certificate(1, 1),
        make_event(
            "CertificateManager",
            "CertificateRevoked",
            {"tokenId": 1, "reason": "fraud"},
        ),
    )
    certificate = get(Certificate, "1")
    assert certificate.is_valid is False
    assert certificate.revocation_reason == "fraud"
    assert certificate.revoked_at > 0
    assert certificate.total_courses == 1


def test_configuration_events_record_values() -> None:
    apply(
        course_created(),
        make_event("CertificateManager", "CourseAdditionFeeUpdated", {"newFee": 42}),
        make_event(
            "CertificateManager", "CourseCertificatePriceSet", {"courseId": 1, "price": 9}
        ),
        certificate_minted(1),
        make_event(
            "CertificateManager",
            "BaseRouteUpdated",
            {"tokenId": 1, "newBaseRoute": "https://c.example/"},
        ),
    )
    assert get(PlatformStats, "platform").course_addition_fee == 42
    assert get(Course, "1").certificate_price == 9
    assert get(Certificate, "1").base_route == "https://c.example/"
