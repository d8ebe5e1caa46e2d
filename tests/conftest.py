from __future__ import annotations

import itertools
import logging
import sys
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import ledger_indexer` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ledger_indexer.main import app  # noqa: E402
from ledger_indexer.models.events import LedgerEvent  # noqa: E402
from ledger_indexer.repos.store import entity_store  # noqa: E402
from ledger_indexer.services.cache import cache_service  # noqa: E402
from ledger_indexer.services.event_queue import event_queue  # noqa: E402
from ledger_indexer.services.indexer import ProcessResult, indexer  # noqa: E402

CREATOR = "0x" + "c" * 40
STUDENT = "0x" + "5" * 40
OTHER_STUDENT = "0x" + "6" * 40
ADMIN = "0x" + "a" * 40

ONE_TOKEN = 10**18


@pytest.fixture(autouse=True)
def reset_entity_store() -> None:
    entity_store.clear()


@pytest.fixture(autouse=True)
def reset_indexer() -> None:
    """Drop events deferred by a previous test."""
    indexer.reset()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def restore_root_logger() -> Any:
    """Undo root-logger level/handler changes made by setup_logging in a test."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.setLevel(level)
    root.handlers[:] = handlers


@pytest.fixture(autouse=True)
def reset_event_queue() -> None:
    if hasattr(event_queue, "_queues"):
        event_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Event builders
# ---------------------------------------------------------------------------
# Every built event gets a fresh transaction hash and the next block, so
# events apply in the order a test builds them unless it says otherwise.

_sequence = itertools.count(1)


def make_event(
    contract: str,
    name: str,
    params: dict[str, Any],
    *,
    block: int | None = None,
    tx_hash: str | None = None,
    log_index: int = 0,
    gas_used: int = 50_000,
) -> LedgerEvent:
    n = next(_sequence)
    return LedgerEvent(
        contract=contract,
        name=name,
        block_number=block if block is not None else 1_000 + n,
        block_timestamp=1_700_000_000 + n * 12,
        transaction_hash=tx_hash or f"0x{n:064x}",
        log_index=log_index,
        gas_used=gas_used,
        params=params,
    )


def course_created(
    course_id: int = 1,
    creator: str = CREATOR,
    title: str = "Solidity 101",
    category: int = 0,
    difficulty: int = 0,
) -> LedgerEvent:
    return make_event(
        "CourseFactory",
        "CourseCreated",
        {
            "courseId": course_id,
            "creator": creator,
            "creatorName": "Ada",
            "title": title,
            "category": category,
            "difficulty": difficulty,
        },
    )


def section_added(
    course_id: int, section_id: int, duration: int = 60, title: str | None = None
) -> LedgerEvent:
    return make_event(
        "CourseFactory",
        "SectionAdded",
        {
            "courseId": course_id,
            "sectionId": section_id,
            "title": title or f"Section {section_id}",
            "contentCID": f"bafy{section_id}",
            "duration": duration,
        },
    )


def section_deleted(course_id: int, section_id: int) -> LedgerEvent:
    return make_event(
        "CourseFactory", "SectionDeleted", {"courseId": course_id, "sectionId": section_id}
    )


def license_minted(
    token_id: int,
    course_id: int = 1,
    student: str = STUDENT,
    price: int = 1_000_000,
    months: int = 1,
) -> LedgerEvent:
    return make_event(
        "CourseLicense",
        "LicenseMinted",
        {
            "tokenId": token_id,
            "courseId": course_id,
            "student": student,
            "durationMonths": months,
            "expiryTimestamp": 1_800_000_000,
            "pricePaid": price,
        },
    )


def section_completed(course_id: int, section_id: int, student: str = STUDENT) -> LedgerEvent:
    return make_event(
        "ProgressTracker",
        "SectionCompleted",
        {"student": student, "courseId": course_id, "sectionId": section_id},
    )


def certificate_minted(token_id: int = 1, owner: str = STUDENT, price: int = 0) -> LedgerEvent:
    return make_event(
        "CertificateManager",
        "CertificateMinted",
        {
            "owner": owner,
            "tokenId": token_id,
            "recipientName": "Grace Hopper",
            "ipfsCID": "bafycert",
            "paymentReceiptHash": "0xreceipt",
            "pricePaid": price,
        },
    )


def course_added_to_certificate(
    token_id: int, course_id: int, owner: str = STUDENT, price: int = 1_000_000
) -> LedgerEvent:
    return make_event(
        "CertificateManager",
        "CourseAddedToCertificate",
        {
            "owner": owner,
            "tokenId": token_id,
            "courseId": course_id,
            "newIpfsCID": f"bafycert{course_id}",
            "paymentReceiptHash": "0xreceipt",
            "pricePaid": price,
        },
    )


def apply(*events: LedgerEvent) -> list[ProcessResult]:
    """Run events through the shared indexer, in order."""
    return [indexer.process(e) for e in events]


def get(cls: type, entity_id: str) -> Any:
    return entity_store.get(cls.KIND, entity_id)  # type: ignore[attr-defined]
