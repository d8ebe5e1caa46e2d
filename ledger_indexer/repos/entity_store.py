from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol


class EntityStore(Protocol):
    def get(self, kind: str, entity_id: str) -> Any | None: ...
    def list(self, kind: str) -> list[Any]: ...
    def save_all(self, entities: Iterable[Any]) -> None: ...
    def clear(self) -> None: ...


class InMemoryEntityStore:
    """kind -> id -> frozen entity.  Entities are immutable, so handing out
    the stored object itself is safe."""

    def __init__(self) -> None:
        self._by_kind: dict[str, dict[str, Any]] = {}

    def get(self, kind: str, entity_id: str) -> Any | None:
        return self._by_kind.get(kind, {}).get(entity_id)

    def list(self, kind: str) -> list[Any]:
        return list(self._by_kind.get(kind, {}).values())

    def save_all(self, entities: Iterable[Any]) -> None:
        # Materialize first so a failing iterator leaves the store untouched.
        batch = list(entities)
        for entity in batch:
            self._by_kind.setdefault(entity.KIND, {})[entity.id] = entity

    def clear(self) -> None:
        self._by_kind.clear()
