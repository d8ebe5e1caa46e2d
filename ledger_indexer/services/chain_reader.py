"""Read-only dependency calls for fields the events leave out.

`CourseCreated` does not carry the description, thumbnail or price, and
`CertificateMinted` does not carry the platform name or base route.  The
indexer asks a chain gateway for them.  These reads are bounded
(CHAIN_READER_TIMEOUT), side-effect free and allowed to fail: every
failure resolves to None, and the handler applies its documented static
fallback:

    course_details       -> description "", thumbnail "", price 0
    certificate_details  -> platform name from PlatformStats (or "EduVerse"),
                            base route ""

A failure is logged and counted, never raised into the pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ledger_indexer.core.config import SETTINGS
from ledger_indexer.core.metrics import DEPENDENCY_READ_FAILURES

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CourseDetails:
    description: str
    thumbnail_cid: str
    price: int


@dataclass(frozen=True, slots=True)
class CertificateDetails:
    platform_name: str
    base_route: str


class ChainReader(Protocol):
    def course_details(self, course_id: str) -> CourseDetails | None: ...
    def certificate_details(self, token_id: str) -> CertificateDetails | None: ...


class NullChainReader:
    """No gateway configured: every read takes the fallback path."""

    def course_details(self, course_id: str) -> CourseDetails | None:
        return None

    def certificate_details(self, token_id: str) -> CertificateDetails | None:
        return None


class _CourseOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str = ""
    thumbnail_cid: str = Field(default="", alias="thumbnailCID")
    price_per_month: int = Field(default=0, ge=0)


class _CertificateOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    platform_name: str = ""
    base_route: str = ""


class HttpChainReader:
    """Reads contract view functions through a JSON gateway.

        GET {base}/courses/{id}        -> {"description", "thumbnailCID", "pricePerMonth"}
        GET {base}/certificates/{id}   -> {"platformName", "baseRoute"}
    """

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def _get(self, call: str, path: str) -> dict | None:
        try:
            response = self._client.get(path)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            DEPENDENCY_READ_FAILURES.labels(call=call).inc()
            logger.warning("%s %s failed, using fallback: %s", call, path, exc)
            return None

    def course_details(self, course_id: str) -> CourseDetails | None:
        data = self._get("course_details", f"/courses/{course_id}")
        if data is None:
            return None
        try:
            out = _CourseOut.model_validate(data)
        except ValidationError as exc:
            DEPENDENCY_READ_FAILURES.labels(call="course_details").inc()
            logger.warning("course_details %s returned bad payload: %s", course_id, exc)
            return None
        return CourseDetails(
            description=out.description,
            thumbnail_cid=out.thumbnail_cid,
            price=out.price_per_month,
        )

    def certificate_details(self, token_id: str) -> CertificateDetails | None:
        data = self._get("certificate_details", f"/certificates/{token_id}")
        if data is None:
            return None
        try:
            out = _CertificateOut.model_validate(data)
        except ValidationError as exc:
            DEPENDENCY_READ_FAILURES.labels(call="certificate_details").inc()
            logger.warning(
                "certificate_details %s returned bad payload: %s", token_id, exc
            )
            return None
        return CertificateDetails(platform_name=out.platform_name, base_route=out.base_route)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if SETTINGS.chain_reader_url:
    chain_reader: ChainReader = HttpChainReader(
        httpx.Client(
            base_url=SETTINGS.chain_reader_url,
            timeout=SETTINGS.chain_reader_timeout,
        )
    )
else:
    chain_reader = NullChainReader()
