"""SQLAlchemy table definitions.

Every entity kind shares one table: the entity graph is read by id or
by kind, never joined in SQL, and the dataclass models in
ledger_indexer/models/ stay the schema.  Rows hold the record produced
by `models.serialization.to_record`.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_indexer.db.engine import Base


class EntityRow(Base):
    __tablename__ = "entities"

    kind: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
