from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from ledger_indexer.models.base import BlockRef, composite_id

STATUS_ACTIVE = "ACTIVE"
STATUS_EXPIRED = "EXPIRED"
STATUS_COMPLETED = "COMPLETED"


def enrollment_status(*, is_active: bool, is_completed: bool) -> str:
    if is_completed:
        return STATUS_COMPLETED
    if not is_active:
        return STATUS_EXPIRED
    return STATUS_ACTIVE


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A course license, keyed by its token id.

    `completion_percentage == floor(sections_completed * 100 /
    course.sections_count)` as of the last recompute.
    """

    KIND: ClassVar[str] = "Enrollment"

    id: str
    student: str
    course_id: str

    duration_months: int = 0
    license_expiry: int = 0
    is_active: bool = True
    status: str = STATUS_ACTIVE

    price_paid: int = 0
    platform_fee: int = 0
    creator_revenue: int = 0
    total_renewals: int = 0
    last_renewed_at: int = 0
    total_spent: int = 0

    is_completed: bool = False
    completion_date: int = 0
    completion_percentage: int = 0
    sections_completed: int = 0

    has_certificate: bool = False
    certificate_token_id: str = ""
    certificate_added_at: int = 0
    certificate_price: int = 0

    purchased_at: int = 0
    last_activity_at: int = 0
    mint_tx_hash: str = ""
    last_tx_hash: str = ""
    block_number: int = 0

    @staticmethod
    def new(
        *, token_id: int | str, student: str, course_id: int | str, at: BlockRef
    ) -> Enrollment:
        return Enrollment(
            id=str(token_id),
            student=student,
            course_id=str(course_id),
            purchased_at=at.timestamp,
            last_activity_at=at.timestamp,
            mint_tx_hash=at.tx_hash,
            last_tx_hash=at.tx_hash,
            block_number=at.block_number,
        )


@dataclass(frozen=True, slots=True)
class StudentCourseEnrollment:
    """(student, course) -> current enrollment id; a pure secondary index."""

    KIND: ClassVar[str] = "StudentCourseEnrollment"

    id: str
    student: str
    course_id: str
    enrollment_id: str
    created_at: int = 0
    tx_hash: str = ""

    @staticmethod
    def key(student: str, course_id: int | str) -> str:
        return composite_id(student, course_id)
