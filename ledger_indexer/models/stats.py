from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

NETWORK_STATS_ID = "network"
PLATFORM_STATS_ID = "platform"
CURSOR_ID = "cursor"


@dataclass(frozen=True, slots=True)
class NetworkStats:
    """Dataset-wide singleton: one increment per processed event."""

    KIND: ClassVar[str] = "NetworkStats"

    id: str = NETWORK_STATS_ID
    total_transactions: int = 0
    total_gas_used: int = 0
    last_block_number: int = 0
    last_block_timestamp: int = 0
    last_block_interval: int = 0

    total_course_creations: int = 0
    total_license_mints: int = 0
    total_certificate_mints: int = 0
    total_progress_updates: int = 0

    course_factory_interactions: int = 0
    course_license_interactions: int = 0
    progress_tracker_interactions: int = 0
    certificate_manager_interactions: int = 0


@dataclass(frozen=True, slots=True)
class PlatformStats:
    """Platform-wide financial aggregates and certificate configuration."""

    KIND: ClassVar[str] = "PlatformStats"

    id: str = PLATFORM_STATS_ID
    total_users: int = 0
    total_courses: int = 0
    total_enrollments: int = 0
    total_certificates: int = 0

    total_revenue: int = 0
    platform_fees: int = 0
    creator_revenue: int = 0
    average_course_price: Decimal = Decimal(0)  # display units

    platform_name: str = ""
    default_base_route: str = ""
    course_addition_fee: int = 0

    last_update_timestamp: int = 0
    last_update_block: int = 0


@dataclass(frozen=True, slots=True)
class IndexerCursor:
    """Highest (block, transaction index, log index) applied so far."""

    KIND: ClassVar[str] = "IndexerCursor"

    id: str = CURSOR_ID
    block_number: int = -1
    transaction_index: int = 0
    log_index: int = 0

    @property
    def position(self) -> tuple[int, int, int]:
        return (self.block_number, self.transaction_index, self.log_index)
