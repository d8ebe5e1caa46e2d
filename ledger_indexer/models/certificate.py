from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from ledger_indexer.models.base import BlockRef, composite_id


@dataclass(frozen=True, slots=True)
class Certificate:
    """The one growing certificate an owner holds, keyed by token id."""

    KIND: ClassVar[str] = "Certificate"

    id: str
    owner: str
    recipient_name: str = ""
    is_valid: bool = True
    total_courses: int = 0  # never decreases
    total_revenue: int = 0

    platform_name: str = ""
    base_route: str = ""
    ipfs_cid: str = ""
    payment_receipt_hash: str = ""
    revocation_reason: str = ""

    created_at: int = 0
    last_updated: int = 0
    revoked_at: int = 0
    mint_tx_hash: str = ""
    block_number: int = 0

    @staticmethod
    def new(*, token_id: int | str, owner: str, at: BlockRef) -> Certificate:
        return Certificate(
            id=str(token_id),
            owner=owner,
            created_at=at.timestamp,
            last_updated=at.timestamp,
            mint_tx_hash=at.tx_hash,
            block_number=at.block_number,
        )


@dataclass(frozen=True, slots=True)
class CertificateCourse:
    """Junction between a Certificate and a completed Course; immutable."""

    KIND: ClassVar[str] = "CertificateCourse"

    id: str
    certificate_id: str
    course_id: str
    enrollment_id: str
    price_paid: int
    platform_fee: int
    creator_revenue: int
    is_first_course: bool
    added_at: int = 0
    tx_hash: str = ""
    block_number: int = 0

    @staticmethod
    def key(certificate_id: int | str, course_id: int | str) -> str:
        return composite_id(certificate_id, course_id)
