from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ledger_indexer.api.common import AmountOut, amount, get_or_404, get_store
from ledger_indexer.models.certificate import Certificate, CertificateCourse
from ledger_indexer.repos.entity_store import EntityStore

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])

Store = Annotated[EntityStore, Depends(get_store)]


class CertificateOut(BaseModel):
    id: str
    owner: str
    recipient_name: str
    is_valid: bool
    total_courses: int
    total_revenue: AmountOut
    platform_name: str
    base_route: str
    ipfs_cid: str
    payment_receipt_hash: str
    revocation_reason: str
    created_at: int
    last_updated: int
    revoked_at: int


class CertificateCourseOut(BaseModel):
    id: str
    course_id: str
    enrollment_id: str
    price_paid: AmountOut
    platform_fee: AmountOut
    creator_revenue: AmountOut
    is_first_course: bool
    added_at: int


def certificate_out(c: Certificate) -> CertificateOut:
    return CertificateOut(
        id=c.id,
        owner=c.owner,
        recipient_name=c.recipient_name,
        is_valid=c.is_valid,
        total_courses=c.total_courses,
        total_revenue=amount(c.total_revenue),
        platform_name=c.platform_name,
        base_route=c.base_route,
        ipfs_cid=c.ipfs_cid,
        payment_receipt_hash=c.payment_receipt_hash,
        revocation_reason=c.revocation_reason,
        created_at=c.created_at,
        last_updated=c.last_updated,
        revoked_at=c.revoked_at,
    )


@router.get("/{certificate_id}", response_model=CertificateOut)
def get_certificate(certificate_id: str, store: Store) -> CertificateOut:
    return certificate_out(get_or_404(store, Certificate, certificate_id))


@router.get("/{certificate_id}/courses", response_model=list[CertificateCourseOut])
def list_certificate_courses(
    certificate_id: str, store: Store
) -> list[CertificateCourseOut]:
    get_or_404(store, Certificate, certificate_id)
    rows = [
        r
        for r in store.list(CertificateCourse.KIND)
        if r.certificate_id == certificate_id
    ]
    rows.sort(key=lambda r: (r.added_at, r.id))
    return [
        CertificateCourseOut(
            id=r.id,
            course_id=r.course_id,
            enrollment_id=r.enrollment_id,
            price_paid=amount(r.price_paid),
            platform_fee=amount(r.platform_fee),
            creator_revenue=amount(r.creator_revenue),
            is_first_course=r.is_first_course,
            added_at=r.added_at,
        )
        for r in rows
    ]
