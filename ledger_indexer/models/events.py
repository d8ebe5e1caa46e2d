"""Inbound ledger events.

`LedgerEvent` is the envelope every source (JSON Lines replay, Redis
queue) produces: block metadata plus the decoded event arguments under
`params`, keyed by their ABI names.  Each handled event has a payload
model below; handlers receive the validated payload, never the raw dict.

ABI argument names are camelCase (`courseId`, `pricePaid`).  The payload
models use snake_case attributes and accept the ABI spelling through an
alias generator.  The few ABI names that are not plain camelCase
(`contentCID`, `ipfsCID`) carry an explicit alias.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ledger_indexer.models.base import BlockRef, composite_id, normalize_address

ContractName = Literal[
    "CourseFactory", "CourseLicense", "ProgressTracker", "CertificateManager"
]

Address = Annotated[str, AfterValidator(normalize_address)]
Uint = Annotated[int, Field(ge=0)]


class EventSchemaError(ValueError):
    def __init__(self, contract: str, name: str, detail: str) -> None:
        super().__init__(f"{contract}.{name}: payload does not match schema: {detail}")
        self.contract = contract
        self.name = name


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class LedgerEvent(_Model):
    contract: ContractName
    name: str
    block_number: Uint
    block_timestamp: Uint
    transaction_hash: Annotated[str, AfterValidator(str.lower)]
    transaction_index: Uint = 0
    log_index: Uint
    gas_used: Uint = 0
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def event_id(self) -> str:
        return composite_id(self.transaction_hash, self.log_index)

    @property
    def ordering_key(self) -> tuple[int, int, int]:
        return (self.block_number, self.transaction_index, self.log_index)

    @property
    def block_ref(self) -> BlockRef:
        return BlockRef(
            timestamp=self.block_timestamp,
            block_number=self.block_number,
            tx_hash=self.transaction_hash,
        )


# ---------------------------------------------------------------------------
# CourseFactory
# ---------------------------------------------------------------------------


class CourseCreated(_Model):
    course_id: Uint
    creator: Address
    creator_name: str = ""
    title: str = ""
    category: int = 0
    difficulty: int = 0


class CourseUpdated(_Model):
    course_id: Uint
    new_price: Uint
    is_active: bool


class CourseRef(_Model):
    """Events that carry nothing but the course id (plus an actor we ignore)."""

    course_id: Uint


class SectionAdded(_Model):
    course_id: Uint
    section_id: Uint
    title: str = ""
    content_cid: str = Field(default="", alias="contentCID")
    duration: Uint = 0


class SectionRef(_Model):
    course_id: Uint
    section_id: Uint


class BatchSectionsAdded(_Model):
    course_id: Uint
    section_ids: list[Uint] = Field(default_factory=list)


class SectionsSwapped(_Model):
    course_id: Uint
    index_a: Uint
    index_b: Uint


class SectionMoved(_Model):
    course_id: Uint
    from_index: Uint
    to_index: Uint
    section_title: str = ""
    # Newer emitters carry the stable id; title matching is the fallback.
    section_id: Uint | None = None


class SectionsBatchReordered(_Model):
    course_id: Uint
    new_order: list[Uint]


class CourseRated(_Model):
    course_id: Uint
    user: Address
    rating: Uint
    new_average_rating: Uint


class RatingUpdated(_Model):
    course_id: Uint
    user: Address
    old_rating: Uint
    new_rating: Uint
    new_average_rating: Uint


class RatingDeleted(_Model):
    course_id: Uint
    user: Address
    previous_rating: Uint


class RatingRemoved(_Model):
    course_id: Uint
    user: Address
    admin: Address


class RatingsModeration(_Model):
    course_id: Uint
    admin: Address


class UserModeration(_Model):
    user: Address
    admin: Address


class CourseEmergencyDeactivated(_Model):
    course_id: Uint
    admin: Address
    timestamp: Uint = 0


# ---------------------------------------------------------------------------
# CourseLicense
# ---------------------------------------------------------------------------


class LicenseMinted(_Model):
    token_id: Uint
    course_id: Uint
    student: Address
    duration_months: Uint = 0
    expiry_timestamp: Uint = 0
    price_paid: Uint


class LicenseRenewed(_Model):
    token_id: Uint
    duration_months: Uint = 0
    expiry_timestamp: Uint = 0
    price_paid: Uint


class LicenseExpired(_Model):
    token_id: Uint


class RevenueRecorded(_Model):
    course_id: Uint
    creator: Address
    amount: Uint


# ---------------------------------------------------------------------------
# ProgressTracker
# ---------------------------------------------------------------------------


class SectionProgress(_Model):
    student: Address
    course_id: Uint
    section_id: Uint


class CourseProgress(_Model):
    student: Address
    course_id: Uint


# ---------------------------------------------------------------------------
# CertificateManager
# ---------------------------------------------------------------------------


class CertificateMinted(_Model):
    owner: Address
    token_id: Uint
    recipient_name: str = ""
    ipfs_cid: str = Field(default="", alias="ipfsCID")
    payment_receipt_hash: str = ""
    price_paid: Uint = 0


class CourseAddedToCertificate(_Model):
    owner: Address
    token_id: Uint
    course_id: Uint
    new_ipfs_cid: str = Field(default="", alias="newIpfsCID")
    payment_receipt_hash: str = ""
    price_paid: Uint


class CertificateUpdated(_Model):
    token_id: Uint
    new_ipfs_cid: str = Field(default="", alias="newIpfsCID")
    payment_receipt_hash: str = ""


class CertificateRevoked(_Model):
    token_id: Uint
    reason: str = ""


class CertificatePaymentRecorded(_Model):
    payer: Address
    token_id: Uint
    payment_receipt_hash: str = ""


class BaseRouteUpdated(_Model):
    token_id: Uint
    new_base_route: str


class DefaultBaseRouteUpdated(_Model):
    new_base_route: str


class PlatformNameUpdated(_Model):
    new_platform_name: str


class CourseAdditionFeeUpdated(_Model):
    new_fee: Uint


class CourseCertificatePriceSet(_Model):
    course_id: Uint
    price: Uint
