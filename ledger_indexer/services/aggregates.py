"""Running aggregate counters.

Both singletons are ordinary entities with a well-known id, read and
written through the same UnitOfWork as every other entity, so they
commit (or roll back) together with the event that changed them.

NetworkStats moves exactly once per applied event; the pipeline calls
`record_network_activity` after the handler returned.  PlatformStats
moves wherever a handler creates a user, course, enrollment or
certificate, or books revenue.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Context, Decimal

from ledger_indexer.core.units import BASE_UNITS_PER_DISPLAY_UNIT
from ledger_indexer.models.base import BlockRef
from ledger_indexer.models.events import LedgerEvent
from ledger_indexer.models.stats import PlatformStats
from ledger_indexer.repos import accessors
from ledger_indexer.repos.unit_of_work import UnitOfWork

_INTERACTION_FIELD = {
    "CourseFactory": "course_factory_interactions",
    "CourseLicense": "course_license_interactions",
    "ProgressTracker": "progress_tracker_interactions",
    "CertificateManager": "certificate_manager_interactions",
}

_TYPED_COUNTERS = {
    ("CourseFactory", "CourseCreated"): "total_course_creations",
    ("CourseLicense", "LicenseMinted"): "total_license_mints",
    ("CertificateManager", "CertificateMinted"): "total_certificate_mints",
    ("ProgressTracker", "SectionStarted"): "total_progress_updates",
    ("ProgressTracker", "SectionCompleted"): "total_progress_updates",
    ("ProgressTracker", "CourseCompleted"): "total_progress_updates",
    ("ProgressTracker", "ProgressReset"): "total_progress_updates",
}

_QUANTUM = Decimal("0.000000000000000001")
_CONTEXT = Context(prec=100)


def record_network_activity(uow: UnitOfWork, event: LedgerEvent) -> None:
    stats = accessors.network_stats(uow)
    changes: dict[str, int] = {
        "total_transactions": stats.total_transactions + 1,
        "total_gas_used": stats.total_gas_used + event.gas_used,
        "last_block_number": event.block_number,
        "last_block_timestamp": event.block_timestamp,
    }
    if stats.last_block_timestamp and event.block_timestamp >= stats.last_block_timestamp:
        changes["last_block_interval"] = (
            event.block_timestamp - stats.last_block_timestamp
        )
    interaction = _INTERACTION_FIELD[event.contract]
    changes[interaction] = getattr(stats, interaction) + 1
    typed = _TYPED_COUNTERS.get((event.contract, event.name))
    if typed is not None:
        changes[typed] = getattr(stats, typed) + 1
    uow.put(replace(stats, **changes))


def bump_platform(uow: UnitOfWork, at: BlockRef, **deltas: int) -> PlatformStats:
    """Add `deltas` to PlatformStats counters and refresh the derived price."""
    stats = accessors.platform_stats(uow)
    updated = replace(
        stats,
        **{name: getattr(stats, name) + delta for name, delta in deltas.items()},
        last_update_timestamp=at.timestamp,
        last_update_block=at.block_number,
    )
    updated = replace(updated, average_course_price=_average_price(updated))
    uow.put(updated)
    return updated


def configure_platform(uow: UnitOfWork, at: BlockRef, **values: object) -> None:
    stats = accessors.platform_stats(uow)
    uow.put(
        replace(
            stats,
            **values,
            last_update_timestamp=at.timestamp,
            last_update_block=at.block_number,
        )
    )


def _average_price(stats: PlatformStats) -> Decimal:
    if stats.total_enrollments <= 0:
        return Decimal(0)
    per_enrollment = _CONTEXT.divide(
        Decimal(stats.total_revenue), Decimal(stats.total_enrollments)
    )
    return _CONTEXT.divide(per_enrollment, BASE_UNITS_PER_DISPLAY_UNIT).quantize(
        _QUANTUM, context=_CONTEXT
    )
