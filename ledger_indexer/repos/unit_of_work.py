"""Per-event staging buffer.

Handlers never write to the store directly.  They read through a
UnitOfWork, which returns the staged version of an entity when one
exists, and stage replacements with `put`.  The pipeline commits the
buffer with a single `save_all` once the handler returned, or drops it
when the handler raised.  A handler therefore sees its own writes, and
nothing half-done ever reaches the store.
"""

from __future__ import annotations

from typing import Any, TypeVar

from ledger_indexer.repos.entity_store import EntityStore

E = TypeVar("E")


class UnitOfWork:
    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._pending: dict[tuple[str, str], Any] = {}

    def get(self, cls: type[E], entity_id: str) -> E | None:
        key = (cls.KIND, entity_id)  # type: ignore[attr-defined]
        if key in self._pending:
            return self._pending[key]
        return self._store.get(cls.KIND, entity_id)  # type: ignore[attr-defined]

    def put(self, entity: Any) -> None:
        self._pending[(entity.KIND, entity.id)] = entity

    def put_all(self, *entities: Any) -> None:
        for entity in entities:
            self.put(entity)

    @property
    def touched(self) -> list[tuple[str, str]]:
        return list(self._pending)

    def commit(self) -> list[tuple[str, str]]:
        """Write every staged entity atomically; returns the (kind, id) keys."""
        keys = self.touched
        if self._pending:
            self._store.save_all(self._pending.values())
        self._pending.clear()
        return keys

    def discard(self) -> None:
        self._pending.clear()
