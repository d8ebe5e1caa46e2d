from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from ledger_indexer.models.base import BlockRef, composite_id


@dataclass(frozen=True, slots=True)
class Course:
    """Catalog entry, keyed by the catalog's numeric course id (stringified).

    Invariant: `sections_count` equals the number of non-deleted
    CourseSection rows of this course.
    """

    KIND: ClassVar[str] = "Course"

    id: str
    creator: str
    creator_name: str = ""
    title: str = ""
    description: str = ""
    thumbnail_cid: str = ""
    category: str = "Other"
    difficulty: str = "Unknown"

    price: int = 0
    is_active: bool = True
    is_deleted: bool = False

    sections_count: int = 0
    total_duration: int = 0

    average_rating: Decimal = Decimal(0)
    total_ratings: int = 0
    rating_sum: int = 0
    ratings_disabled: bool = False
    last_rating_at: int = 0

    total_enrollments: int = 0
    active_enrollments: int = 0
    total_revenue: int = 0  # gross license payments
    certificate_revenue: int = 0  # creator share of certificate additions
    completed_students: int = 0
    completion_rate: Decimal = Decimal(0)
    certificate_price: int = 0

    is_emergency_deactivated: bool = False
    emergency_deactivation_reason: str = ""

    created_at: int = 0
    updated_at: int = 0
    creation_tx_hash: str = ""
    block_number: int = 0

    @staticmethod
    def new(*, course_id: int | str, creator: str, at: BlockRef) -> Course:
        return Course(
            id=str(course_id),
            creator=creator,
            created_at=at.timestamp,
            updated_at=at.timestamp,
            creation_tx_hash=at.tx_hash,
            block_number=at.block_number,
        )


@dataclass(frozen=True, slots=True)
class CourseSection:
    """One section of a course, keyed "{course_id}-{section_id}".

    Invariant: among non-deleted siblings the order ids are exactly
    0..count-1.
    """

    KIND: ClassVar[str] = "CourseSection"

    id: str
    course_id: str
    section_id: int
    order_id: int
    title: str = ""
    content_cid: str = ""
    duration: int = 0
    is_deleted: bool = False

    started_count: int = 0
    completed_count: int = 0
    dropoff_rate: Decimal = Decimal(0)  # percent

    created_at: int = 0
    updated_at: int = 0
    tx_hash: str = ""
    block_number: int = 0

    @staticmethod
    def key(course_id: int | str, section_id: int) -> str:
        return composite_id(course_id, section_id)

    @staticmethod
    def new(
        *, course_id: int | str, section_id: int, order_id: int, at: BlockRef
    ) -> CourseSection:
        return CourseSection(
            id=CourseSection.key(course_id, section_id),
            course_id=str(course_id),
            section_id=section_id,
            order_id=order_id,
            created_at=at.timestamp,
            updated_at=at.timestamp,
            tx_hash=at.tx_hash,
            block_number=at.block_number,
        )


@dataclass(frozen=True, slots=True)
class CourseSectionIndex:
    """Course -> every section id ever added (deleted ones included)."""

    KIND: ClassVar[str] = "CourseSectionIndex"

    id: str  # course id
    section_ids: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class CourseEnrollmentIndex:
    """Course -> every enrollment (license token) id minted for it."""

    KIND: ClassVar[str] = "CourseEnrollmentIndex"

    id: str  # course id
    enrollment_ids: tuple[str, ...] = ()
