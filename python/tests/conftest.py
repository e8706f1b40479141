"""Pytest configuration and fixtures for Converse tests.

Test isolation strategy:
- Every test gets fresh settings read from a clean test environment
- Service and store tests use an in-memory FakeMessageStore
- API tests run the full app (lifespan included) over an injected fake store
- SQL store tests use an in-memory SQLite database per test
"""

import sys
from collections.abc import Generator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient

from converse.app import add_request_id_middleware, create_app
from converse.config import clear_settings_cache
from converse.store.fake import FakeMessageStore
from tests.helpers import TickingClock

_ENV_VARS = (
    "CONVERSE_ENV",
    "MESSAGE_STORE",
    "MESSAGES_TABLE",
    "STORE_TIMEOUT_S",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "DATABASE_URL",
    "LOG_JSON",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Run every test against a clean test environment and fresh settings."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CONVERSE_ENV", "test")
    monkeypatch.setenv("MESSAGE_STORE", "memory")
    monkeypatch.setenv("LOG_JSON", "false")
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(clock: TickingClock) -> FakeMessageStore:
    """Provide an empty in-memory message store with a deterministic clock."""
    return FakeMessageStore(clock=clock)


@pytest.fixture
def client(store: FakeMessageStore) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client over the fake store.

    The lifespan runs, so the reconciliation loop is started before the
    first request and stopped afterwards.
    """
    app = create_app(store=store)
    add_request_id_middleware(app, log_requests=False)
    with TestClient(app) as client:
        yield client
