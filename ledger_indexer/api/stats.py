from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ledger_indexer.api.common import AmountOut, amount, get_store
from ledger_indexer.models.stats import (
    CURSOR_ID,
    NETWORK_STATS_ID,
    PLATFORM_STATS_ID,
    IndexerCursor,
    NetworkStats,
    PlatformStats,
)
from ledger_indexer.repos.entity_store import EntityStore
from ledger_indexer.services import cache
from ledger_indexer.services.cache import cache_service

router = APIRouter(prefix="/v1/stats", tags=["stats"])

Store = Annotated[EntityStore, Depends(get_store)]


class NetworkStatsOut(BaseModel):
    total_transactions: int
    total_gas_used: int
    last_block_number: int
    last_block_timestamp: int
    last_block_interval: int
    total_course_creations: int
    total_license_mints: int
    total_certificate_mints: int
    total_progress_updates: int
    course_factory_interactions: int
    course_license_interactions: int
    progress_tracker_interactions: int
    certificate_manager_interactions: int


class PlatformStatsOut(BaseModel):
    total_users: int
    total_courses: int
    total_enrollments: int
    total_certificates: int
    total_revenue: AmountOut
    platform_fees: AmountOut
    creator_revenue: AmountOut
    average_course_price: Decimal
    platform_name: str
    default_base_route: str
    course_addition_fee: AmountOut
    last_update_timestamp: int
    last_update_block: int


# Both singletons exist from the first applied event on; an empty store
# answers with zeroes rather than 404.


@router.get("/network", response_model=NetworkStatsOut)
async def get_network_stats(store: Store) -> NetworkStatsOut:
    async def load() -> str:
        s = store.get(NetworkStats.KIND, NETWORK_STATS_ID) or NetworkStats()
        return NetworkStatsOut(
            total_transactions=s.total_transactions,
            total_gas_used=s.total_gas_used,
            last_block_number=s.last_block_number,
            last_block_timestamp=s.last_block_timestamp,
            last_block_interval=s.last_block_interval,
            total_course_creations=s.total_course_creations,
            total_license_mints=s.total_license_mints,
            total_certificate_mints=s.total_certificate_mints,
            total_progress_updates=s.total_progress_updates,
            course_factory_interactions=s.course_factory_interactions,
            course_license_interactions=s.course_license_interactions,
            progress_tracker_interactions=s.progress_tracker_interactions,
            certificate_manager_interactions=s.certificate_manager_interactions,
        ).model_dump_json()

    cached = await cache.read_through(cache_service, cache.stats_key("network"), load)
    return NetworkStatsOut.model_validate_json(cached)  # type: ignore[arg-type]


@router.get("/platform", response_model=PlatformStatsOut)
async def get_platform_stats(store: Store) -> PlatformStatsOut:
    async def load() -> str:
        s = store.get(PlatformStats.KIND, PLATFORM_STATS_ID) or PlatformStats()
        return PlatformStatsOut(
            total_users=s.total_users,
            total_courses=s.total_courses,
            total_enrollments=s.total_enrollments,
            total_certificates=s.total_certificates,
            total_revenue=amount(s.total_revenue),
            platform_fees=amount(s.platform_fees),
            creator_revenue=amount(s.creator_revenue),
            average_course_price=s.average_course_price,
            platform_name=s.platform_name,
            default_base_route=s.default_base_route,
            course_addition_fee=amount(s.course_addition_fee),
            last_update_timestamp=s.last_update_timestamp,
            last_update_block=s.last_update_block,
        ).model_dump_json()

    cached = await cache.read_through(cache_service, cache.stats_key("platform"), load)
    return PlatformStatsOut.model_validate_json(cached)  # type: ignore[arg-type]


class CursorOut(BaseModel):
    block_number: int
    transaction_index: int
    log_index: int


@router.get("/cursor", response_model=CursorOut)
def get_cursor(store: Store) -> CursorOut:
    c = store.get(IndexerCursor.KIND, CURSOR_ID) or IndexerCursor()
    return CursorOut(
        block_number=c.block_number,
        transaction_index=c.transaction_index,
        log_index=c.log_index,
    )
