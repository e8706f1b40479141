"""Database module for Converse.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from converse.db.engine import create_db_engine, get_engine
from converse.db.models import Base, MessageRow
from converse.db.session import create_session_factory, transaction

__all__ = [
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "transaction",
    "Base",
    "MessageRow",
]
