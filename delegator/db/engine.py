# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Used only by the pgvector vector store backend.
#
# Two engines share one schema:
#   - async (asyncpg):    query-time search from the orchestrator
#   - sync  (psycopg2):   seeding scripts that write knowledge records
#
# Both are created lazily, on first use, so the default ChromaDB setup never
# needs a PostgreSQL driver installed or a database reachable.
# =============================================================================

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from delegator.config import settings

# ---------------------------------------------------------------------------
# Async Engine (Lazy Initialization)
# ---------------------------------------------------------------------------
# - pool_size=5: persistent connections in the pool
# - max_overflow=10: extra connections allowed during traffic spikes
# - expire_on_commit=False: loaded objects stay readable after commit
# ---------------------------------------------------------------------------

_async_engine = None
_async_session_factory = None


def _get_async_engine():
    """Lazily create and cache the async SQLAlchemy engine."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _async_engine


def async_session_factory() -> AsyncSession:
    """Return a new AsyncSession bound to the shared async engine."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=_get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory()


# ---------------------------------------------------------------------------
# Sync Engine (Lazy Initialization)
# ---------------------------------------------------------------------------

_sync_engine = None
_sync_session_factory = None


def _get_sync_engine():
    """Lazily create and cache the sync SQLAlchemy engine."""
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = create_engine(
            settings.database_url_sync,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _sync_engine


def _get_sync_session_factory():
    """Lazily create and cache the sync session factory."""
    global _sync_session_factory
    if _sync_session_factory is None:
        _sync_session_factory = sessionmaker(
            bind=_get_sync_engine(),
            class_=Session,
            expire_on_commit=False,
        )
    return _sync_session_factory


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """
    Context manager that provides a sync database session.

    Usage:
        with get_sync_session() as session:
            session.add(record)
            # Auto-commits on exit, auto-rollbacks on exception
    """
    factory = _get_sync_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_schema() -> None:
    """Create the pgvector extension and all tables if they don't exist."""
    from sqlalchemy import text

    from delegator.db.models import Base

    engine = _get_sync_engine()
    with engine.begin() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        Base.metadata.create_all(conn)
