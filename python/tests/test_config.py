"""Tests for application configuration and store selection."""

import pytest
from pydantic import ValidationError

from converse.config import Environment, Settings, StoreBackend, get_settings
from converse.store import get_message_store
from converse.store.fake import FakeMessageStore
from converse.store.sql import SqlMessageStore
from converse.store.supabase import SupabaseMessageStore


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {"CONVERSE_ENV": "test", "MESSAGE_STORE": "memory"}
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    def test_defaults(self):
        s = _make_settings()

        assert s.converse_env == Environment.TEST
        assert s.message_store == StoreBackend.MEMORY
        assert s.messages_table == "messages"
        assert s.store_timeout_s == 30.0

    def test_get_settings_reads_environment(self, monkeypatch):
        monkeypatch.setenv("MESSAGES_TABLE", "board_messages")

        assert get_settings().messages_table == "board_messages"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestBackendValidation:
    """Each backend requires its own settings."""

    def test_supabase_requires_url_and_key(self):
        with pytest.raises(ValidationError, match="SUPABASE_URL, SUPABASE_SERVICE_KEY"):
            _make_settings(MESSAGE_STORE="supabase")

    def test_supabase_rest_url(self):
        s = _make_settings(
            MESSAGE_STORE="supabase",
            SUPABASE_URL="https://project.supabase.test/",
            SUPABASE_SERVICE_KEY="test-key",
        )

        assert s.rest_url == "https://project.supabase.test/rest/v1/messages"

    def test_sql_requires_database_url(self):
        with pytest.raises(ValidationError, match="DATABASE_URL"):
            _make_settings(MESSAGE_STORE="sql")

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_memory_store_refused_outside_local_and_test(self, env):
        with pytest.raises(ValidationError, match="MESSAGE_STORE=memory"):
            _make_settings(CONVERSE_ENV=env)

    def test_timeout_floor(self):
        with pytest.raises(ValidationError, match="must be >= 1"):
            _make_settings(STORE_TIMEOUT_S=0)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(MESSAGE_STORE="redis")


class TestGetMessageStore:
    """Tests for store adapter selection."""

    def test_memory(self):
        assert isinstance(get_message_store(_make_settings()), FakeMessageStore)

    @pytest.mark.asyncio
    async def test_supabase(self):
        store = get_message_store(
            _make_settings(
                MESSAGE_STORE="supabase",
                SUPABASE_URL="https://project.supabase.test",
                SUPABASE_SERVICE_KEY="test-key",
                MESSAGES_TABLE="board",
            )
        )

        assert isinstance(store, SupabaseMessageStore)
        assert store.rest_url == "https://project.supabase.test/rest/v1/board"
        await store.aclose()

    @pytest.mark.asyncio
    async def test_sql_creates_schema(self):
        store = get_message_store(
            _make_settings(MESSAGE_STORE="sql", DATABASE_URL="sqlite:///:memory:")
        )

        assert isinstance(store, SqlMessageStore)
        assert await store.select_all() == []
