from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ledger_indexer.api.certificates import CertificateOut, certificate_out
from ledger_indexer.api.common import AmountOut, amount, get_or_404, get_store
from ledger_indexer.api.enrollments import EnrollmentOut, enrollment_out
from ledger_indexer.models.activity import ActivityEvent
from ledger_indexer.models.base import normalize_address
from ledger_indexer.models.certificate import Certificate
from ledger_indexer.models.enrollment import Enrollment
from ledger_indexer.models.user import UserProfile
from ledger_indexer.repos.entity_store import EntityStore

router = APIRouter(prefix="/v1/users", tags=["users"])

Store = Annotated[EntityStore, Depends(get_store)]


class UserOut(BaseModel):
    id: str
    # as a student
    courses_enrolled: int
    courses_completed: int
    active_enrollments: int
    total_sections_completed: int
    total_spent_on_courses: AmountOut
    total_spent_on_certificates: AmountOut
    total_spent: AmountOut
    # as a creator
    courses_created: int
    active_courses_created: int
    deleted_courses_created: int
    total_students: int
    total_revenue: AmountOut
    average_rating: Decimal
    total_ratings_received: int
    # certificate
    has_certificate: bool
    certificate_token_id: str
    total_courses_in_certificate: int
    is_blacklisted: bool
    created_at: int
    last_activity_at: int


class ActivityOut(BaseModel):
    id: str
    type: str
    description: str
    timestamp: int
    block_number: int
    tx_hash: str
    course_id: str | None
    enrollment_id: str | None
    certificate_id: str | None
    metadata: str | None


def _profile(store: EntityStore, address: str) -> UserProfile:
    return get_or_404(store, UserProfile, normalize_address(address))


@router.get("/{address}", response_model=UserOut)
def get_user(address: str, store: Store) -> UserOut:
    u = _profile(store, address)
    return UserOut(
        id=u.id,
        courses_enrolled=u.courses_enrolled,
        courses_completed=u.courses_completed,
        active_enrollments=u.active_enrollments,
        total_sections_completed=u.total_sections_completed,
        total_spent_on_courses=amount(u.total_spent_on_courses),
        total_spent_on_certificates=amount(u.total_spent_on_certificates),
        total_spent=amount(u.total_spent),
        courses_created=u.courses_created,
        active_courses_created=u.active_courses_created,
        deleted_courses_created=u.deleted_courses_created,
        total_students=u.total_students,
        total_revenue=amount(u.total_revenue),
        average_rating=u.average_rating,
        total_ratings_received=u.total_ratings_received,
        has_certificate=u.has_certificate,
        certificate_token_id=u.certificate_token_id,
        total_courses_in_certificate=u.total_courses_in_certificate,
        is_blacklisted=u.is_blacklisted,
        created_at=u.created_at,
        last_activity_at=u.last_activity_at,
    )


@router.get("/{address}/enrollments", response_model=list[EnrollmentOut])
def list_user_enrollments(address: str, store: Store) -> list[EnrollmentOut]:
    u = _profile(store, address)
    enrollments = [e for e in store.list(Enrollment.KIND) if e.student == u.id]
    enrollments.sort(key=lambda e: (e.purchased_at, e.id))
    return [enrollment_out(e) for e in enrollments]


@router.get("/{address}/activity", response_model=list[ActivityOut])
def list_user_activity(
    address: str,
    store: Store,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[ActivityOut]:
    u = _profile(store, address)
    events = [a for a in store.list(ActivityEvent.KIND) if a.user == u.id]
    # Newest first.
    events.sort(key=lambda a: (a.block_number, a.id), reverse=True)
    return [
        ActivityOut(
            id=a.id,
            type=a.type,
            description=a.description,
            timestamp=a.timestamp,
            block_number=a.block_number,
            tx_hash=a.tx_hash,
            course_id=a.course_id,
            enrollment_id=a.enrollment_id,
            certificate_id=a.certificate_id,
            metadata=a.metadata,
        )
        for a in events[:limit]
    ]


@router.get("/{address}/certificate", response_model=CertificateOut)
def get_user_certificate(address: str, store: Store) -> CertificateOut:
    u = _profile(store, address)
    if not u.has_certificate:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{u.id} holds no certificate",
        )
    return certificate_out(get_or_404(store, Certificate, u.certificate_token_id))
