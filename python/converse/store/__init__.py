"""Message store clients.

Provides:
- MessageStoreBase: the async CRUD + subscribe contract
- FakeMessageStore for tests and local development
- SupabaseMessageStore over the PostgREST API
- SqlMessageStore over SQLAlchemy
- get_message_store() to build the configured adapter
"""

from converse.config import Settings, StoreBackend, get_settings
from converse.store.base import (
    SNAPSHOT_ORDER,
    ChangeEvent,
    ChangeHandler,
    MessageStoreBase,
    OrderBy,
    Subscription,
    sort_messages,
)
from converse.store.fake import FakeMessageStore
from converse.store.supabase import SupabaseMessageStore


def get_message_store(settings: Settings | None = None) -> MessageStoreBase:
    """Get the configured message store.

    Returns:
        SupabaseMessageStore for MESSAGE_STORE=supabase,
        SqlMessageStore for MESSAGE_STORE=sql,
        FakeMessageStore otherwise.
    """
    if settings is None:
        settings = get_settings()

    if settings.message_store == StoreBackend.SUPABASE:
        return SupabaseMessageStore(
            supabase_url=settings.supabase_url,  # type: ignore[arg-type]
            service_key=settings.supabase_service_key,  # type: ignore[arg-type]
            table=settings.messages_table,
            timeout_s=settings.store_timeout_s,
        )

    if settings.message_store == StoreBackend.SQL:
        from converse.db.engine import create_db_engine
        from converse.db.session import create_session_factory
        from converse.store.sql import SqlMessageStore, create_schema

        engine = create_db_engine(settings.database_url)
        create_schema(engine)
        return SqlMessageStore(create_session_factory(engine))

    return FakeMessageStore(table=settings.messages_table)


__all__ = [
    "SNAPSHOT_ORDER",
    "ChangeEvent",
    "ChangeHandler",
    "FakeMessageStore",
    "MessageStoreBase",
    "OrderBy",
    "Subscription",
    "SupabaseMessageStore",
    "get_message_store",
    "sort_messages",
]
