from __future__ import annotations

from ledger_indexer.db.engine import session_factory
from ledger_indexer.repos.entity_store import EntityStore, InMemoryEntityStore
from ledger_indexer.repos.sql_entity_store import SqlEntityStore

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if session_factory is not None:
    entity_store: EntityStore = SqlEntityStore(session_factory)
else:
    entity_store = InMemoryEntityStore()
