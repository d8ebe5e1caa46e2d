from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ledger_indexer.api.common import AmountOut, amount, get_or_404, get_store
from ledger_indexer.models.base import normalize_address
from ledger_indexer.models.enrollment import Enrollment, StudentCourseEnrollment
from ledger_indexer.repos.entity_store import EntityStore

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])

Store = Annotated[EntityStore, Depends(get_store)]


class EnrollmentOut(BaseModel):
    id: str
    student: str
    course_id: str
    status: str
    is_active: bool
    duration_months: int
    license_expiry: int
    price_paid: AmountOut
    platform_fee: AmountOut
    creator_revenue: AmountOut
    total_spent: AmountOut
    total_renewals: int
    sections_completed: int
    completion_percentage: int
    is_completed: bool
    completion_date: int
    has_certificate: bool
    certificate_token_id: str
    certificate_price: AmountOut
    purchased_at: int
    last_activity_at: int


def enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=e.id,
        student=e.student,
        course_id=e.course_id,
        status=e.status,
        is_active=e.is_active,
        duration_months=e.duration_months,
        license_expiry=e.license_expiry,
        price_paid=amount(e.price_paid),
        platform_fee=amount(e.platform_fee),
        creator_revenue=amount(e.creator_revenue),
        total_spent=amount(e.total_spent),
        total_renewals=e.total_renewals,
        sections_completed=e.sections_completed,
        completion_percentage=e.completion_percentage,
        is_completed=e.is_completed,
        completion_date=e.completion_date,
        has_certificate=e.has_certificate,
        certificate_token_id=e.certificate_token_id,
        certificate_price=amount(e.certificate_price),
        purchased_at=e.purchased_at,
        last_activity_at=e.last_activity_at,
    )


# Declared before /{enrollment_id} so "lookup" is not taken for an id.
@router.get("/lookup", response_model=EnrollmentOut)
def lookup_enrollment(student: str, course_id: str, store: Store) -> EnrollmentOut:
    key = StudentCourseEnrollment.key(normalize_address(student), course_id)
    lookup = store.get(StudentCourseEnrollment.KIND, key)
    if lookup is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No enrollment of {student} in course {course_id}",
        )
    return enrollment_out(get_or_404(store, Enrollment, lookup.enrollment_id))


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
def get_enrollment(enrollment_id: str, store: Store) -> EnrollmentOut:
    return enrollment_out(get_or_404(store, Enrollment, enrollment_id))
