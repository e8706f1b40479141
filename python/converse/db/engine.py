"""SQLAlchemy engine construction for the SQL message store."""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from converse.config import get_settings


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create an engine for database_url (default: DATABASE_URL from settings).

    An in-memory SQLite database lives only as long as its connection, so it
    gets one shared connection usable from the store's worker threads.
    """
    database_url = database_url or get_settings().database_url
    if not database_url:
        raise ValueError("DATABASE_URL is not configured")

    if _is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


@lru_cache
def get_engine() -> Engine:
    """Process-wide engine built from settings."""
    return create_db_engine()
