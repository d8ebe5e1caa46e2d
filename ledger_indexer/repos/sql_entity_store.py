"""SQL implementation of EntityStore."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from ledger_indexer.db.tables import EntityRow
from ledger_indexer.models.serialization import from_record, to_record


class SqlEntityStore:
    """Satisfies the EntityStore Protocol using SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, kind: str, entity_id: str) -> Any | None:
        with self._session_factory() as session:
            row = session.get(EntityRow, (kind, entity_id))
            if row is None:
                return None
            return from_record(row.kind, row.data)

    def list(self, kind: str) -> list[Any]:
        stmt = select(EntityRow).where(EntityRow.kind == kind).order_by(EntityRow.id)
        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [from_record(row.kind, row.data) for row in rows]

    def save_all(self, entities: Iterable[Any]) -> None:
        # session.begin() commits on exit and rolls back on exception, so
        # one event's writes land together or not at all.
        with self._session_factory.begin() as session:
            for entity in entities:
                session.merge(
                    EntityRow(kind=entity.KIND, id=entity.id, data=to_record(entity))
                )

    def clear(self) -> None:
        with self._session_factory.begin() as session:
            session.execute(delete(EntityRow))
