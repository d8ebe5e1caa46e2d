"""SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides:
- a synchronous engine (the indexer commits one event at a time from a
  single thread, so there is nothing for an async driver to overlap)
- a session factory used by SqlEntityStore
- a FastAPI lifespan hook for startup/shutdown

When DATABASE_URL is None, all exports are None and both processes fall
back to the in-memory entity store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ledger_indexer.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


def sync_database_url(url: str) -> str:
    # Accept the async-driver URLs other services share with us.
    return url.replace("postgresql+asyncpg", "postgresql+psycopg2")


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


# --- Engine and session factory (None when no DATABASE_URL) ---

if SETTINGS.database_url:
    engine: Engine | None = create_engine(
        sync_database_url(SETTINGS.database_url),
        echo=SETTINGS.is_dev and SETTINGS.log_level == "debug",
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    session_factory: sessionmaker[Session] | None = make_session_factory(engine)
else:
    engine = None
    session_factory = None


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine."""
    if engine is None:
        logger.info("No DATABASE_URL configured, using the in-memory entity store")
        yield
        return

    logger.info("Database engine created: %s", engine.url.render_as_string())
    yield
    engine.dispose()
    logger.info("Database engine disposed")
