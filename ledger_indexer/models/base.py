from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Protocol

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(address: str) -> str:
    """Account ids are lower-cased hex so every stream agrees on one key."""
    return address.strip().lower()


def composite_id(*parts: object) -> str:
    return "-".join(str(p) for p in parts)


@dataclass(frozen=True, slots=True)
class BlockRef:
    """Where a write came from: stamped onto entities on creation and update."""

    timestamp: int
    block_number: int
    tx_hash: str


class Entity(Protocol):
    KIND: ClassVar[str]
    id: str
