from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from ledger_indexer.models.base import ZERO_ADDRESS, BlockRef, composite_id


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Dual-role account summary: a student and a creator at the same time.

    Created lazily by the first event that references the address and
    never deleted.
    """

    KIND: ClassVar[str] = "UserProfile"

    id: str  # normalized address

    # student side
    courses_enrolled: int = 0
    courses_completed: int = 0
    active_enrollments: int = 0
    total_spent_on_courses: int = 0
    total_spent_on_certificates: int = 0
    total_spent: int = 0
    total_sections_completed: int = 0
    first_enrollment_at: int = 0

    # creator side
    courses_created: int = 0
    active_courses_created: int = 0
    deleted_courses_created: int = 0
    total_students: int = 0
    total_revenue: int = 0
    average_rating: Decimal = Decimal(0)
    total_ratings_received: int = 0
    rating_sum_received: int = 0
    first_course_created_at: int = 0

    # certificate summary
    has_certificate: bool = False
    certificate_token_id: str = ""
    certificate_name: str = ""
    total_courses_in_certificate: int = 0
    certificate_minted_at: int = 0
    certificate_last_updated: int = 0

    # moderation
    is_blacklisted: bool = False
    blacklisted_at: int = 0
    blacklisted_by: str = ZERO_ADDRESS

    last_activity_at: int = 0
    created_at: int = 0
    updated_at: int = 0
    first_tx_hash: str = ""
    last_tx_hash: str = ""
    block_number: int = 0

    @staticmethod
    def new(*, address: str, at: BlockRef) -> UserProfile:
        return UserProfile(
            id=address,
            last_activity_at=at.timestamp,
            created_at=at.timestamp,
            updated_at=at.timestamp,
            first_tx_hash=at.tx_hash,
            last_tx_hash=at.tx_hash,
            block_number=at.block_number,
        )


@dataclass(frozen=True, slots=True)
class TeacherStudent:
    """Distinct creator/student pair; its existence is what makes
    `UserProfile.total_students` a set cardinality."""

    KIND: ClassVar[str] = "TeacherStudent"

    id: str
    teacher: str
    student: str
    first_enrollment_date: int = 0
    last_activity_date: int = 0
    total_courses_bought: int = 0
    total_spent: int = 0
    created_tx_hash: str = ""
    last_tx_hash: str = ""

    @staticmethod
    def key(teacher: str, student: str) -> str:
        return composite_id(teacher, student)

    @staticmethod
    def new(*, teacher: str, student: str, at: BlockRef) -> TeacherStudent:
        return TeacherStudent(
            id=TeacherStudent.key(teacher, student),
            teacher=teacher,
            student=student,
            first_enrollment_date=at.timestamp,
            last_activity_date=at.timestamp,
            created_tx_hash=at.tx_hash,
            last_tx_hash=at.tx_hash,
        )
