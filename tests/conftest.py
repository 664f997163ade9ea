"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, an SQLite history database and bridge wiring.
"""

from pathlib import Path
from typing import AsyncGenerator, Generator, List, Optional

import pytest
import pytest_asyncio
from pydantic_settings import SettingsConfigDict

from dexter_bridge.config import settings as settings_module
from dexter_bridge.config.settings import Settings
from dexter_bridge.config.database import SQLiteBackend, db_manager
from dexter_bridge.api.sse.bridge import StreamingBridge, reset_streaming_bridge
from dexter_bridge.core.storage import SessionHistoryStore, close_history_store
from dexter_bridge.core.storage.history_store import reset_schema_state

from tests.utils.mocks import MemoryHistoryStore


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    debug: bool = True
    database_url: str = "sqlite://:memory:"
    agent_factory: Optional[str] = None
    langsmith_deployment_url: Optional[str] = None
    langsmith_api_key: Optional[str] = None
    api_keys: List[str] = []
    log_level: str = "DEBUG"
    log_dir: Optional[Path] = None

    model_config = SettingsConfigDict(env_file=".env.test", env_prefix="DEXTER_TEST_")


@pytest.fixture(autouse=True)
def test_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[TestSettings, None, None]:
    """Install fresh test settings and reset process-wide singletons around each test."""
    test_settings = TestSettings()
    monkeypatch.setattr(settings_module, "settings", test_settings)

    reset_streaming_bridge()
    close_history_store()
    reset_schema_state()

    yield test_settings

    reset_streaming_bridge()
    close_history_store()
    reset_schema_state()
    db_manager.use_backend(None)


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    """Path of a throwaway SQLite history database."""
    return tmp_path / "history" / "dexter_web_chat.db"


@pytest_asyncio.fixture
async def sqlite_backend(sqlite_path: Path) -> AsyncGenerator[SQLiteBackend, None]:
    """Connected SQLite backend installed as the process database."""
    backend = SQLiteBackend(str(sqlite_path))
    db_manager.use_backend(backend)
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def history_store(sqlite_backend: SQLiteBackend) -> SessionHistoryStore:
    """History store over the SQLite test database."""
    return SessionHistoryStore(sqlite_backend)


@pytest.fixture
def memory_store() -> MemoryHistoryStore:
    """In-memory history store."""
    return MemoryHistoryStore()


@pytest.fixture
def make_bridge(test_settings: TestSettings, memory_store: MemoryHistoryStore):
    """Build a streaming bridge with test settings and the in-memory store by default."""

    def _make(**kwargs) -> StreamingBridge:
        kwargs.setdefault("history_store", memory_store)
        kwargs.setdefault("settings", test_settings)
        return StreamingBridge(**kwargs)

    return _make


# Pytest configuration
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file paths."""
    for item in items:
        # Add markers based on file path
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.path):
            item.add_marker(pytest.mark.integration)
