"""Pieces shared by the read-only routers."""

from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException, status
from pydantic import BaseModel

from ledger_indexer.core.units import to_display
from ledger_indexer.repos.entity_store import EntityStore
from ledger_indexer.repos.store import entity_store

E = TypeVar("E")


class AmountOut(BaseModel):
    """A token amount: exact base units, and the same value in display units.

    Both are strings; base-unit values routinely exceed 2**53.
    """

    raw: str
    display: str


def amount(base_units: int) -> AmountOut:
    return AmountOut(raw=str(base_units), display=format(to_display(base_units), "f"))


def get_store() -> EntityStore:
    return entity_store


def get_or_404(store: EntityStore, cls: type[E], entity_id: str) -> E:
    entity = store.get(cls.KIND, entity_id)  # type: ignore[attr-defined]
    if entity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{cls.KIND} {entity_id} not found",  # type: ignore[attr-defined]
        )
    return entity
