"""
Unit Tests for Session History Storage
======================================

Tests for the history store over SQLite, lazy schema creation and database backends.
"""

import asyncio
from pathlib import Path
from typing import Any, Sequence

import pytest

from dexter_bridge.config.database import (
    PostgresBackend,
    SQLiteBackend,
    check_database_health,
    create_backend,
)
from dexter_bridge.core.storage import SessionHistoryStore, StorageError, get_history_store
from dexter_bridge.models.schemas import Turn


class CountingSQLiteBackend(SQLiteBackend):
    """SQLite backend counting CREATE TABLE statements."""

    def __init__(self, path: str):
        super().__init__(path)
        self.create_calls = 0

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> None:
        if "CREATE TABLE" in sql:
            self.create_calls += 1
            await asyncio.sleep(0)
        await super().execute(sql, args)


class BrokenBackend(SQLiteBackend):
    """Backend whose statements always fail."""

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> None:
        raise RuntimeError("database is locked")

    async def fetch(self, sql: str, args: Sequence[Any] = ()):
        raise RuntimeError("database is locked")


class UnopenedSQLiteBackend(SQLiteBackend):
    """Backend whose connection never opens."""

    async def connect(self) -> None:
        return None


class TestSessionHistoryStore:
    """Test loading and appending turns."""

    async def test_unknown_session_is_empty(self, history_store: SessionHistoryStore):
        """Test a session without turns loads as empty."""
        assert await history_store.load("web-missing") == []

    async def test_append_preserves_order(self, history_store: SessionHistoryStore):
        """Test turns load in insertion order."""
        await history_store.append("s1", Turn(query="first", answer="one"))
        await history_store.append("s1", Turn(query="second", answer="two", summary="short"))

        turns = await history_store.load("s1")

        assert turns == [
            Turn(query="first", answer="one", summary=None),
            Turn(query="second", answer="two", summary="short"),
        ]

    async def test_sessions_are_isolated(self, history_store: SessionHistoryStore):
        """Test turns are keyed by session id."""
        await history_store.append("s1", Turn(query="a", answer="b"))
        await history_store.append("s2", Turn(query="c", answer="d"))

        assert [turn.query for turn in await history_store.load("s1")] == ["a"]
        assert [turn.query for turn in await history_store.load("s2")] == ["c"]

    async def test_turns_survive_reconnect(self, sqlite_path: Path):
        """Test appended turns are durable across connections."""
        backend = SQLiteBackend(str(sqlite_path))
        await SessionHistoryStore(backend).append("s1", Turn(query="q", answer="a"))
        await backend.close()

        reopened = SQLiteBackend(str(sqlite_path))
        try:
            turns = await SessionHistoryStore(reopened).load("s1")
        finally:
            await reopened.close()

        assert turns == [Turn(query="q", answer="a")]

    async def test_schema_created_once(self, tmp_path: Path):
        """Test concurrent first callers create the schema once."""
        backend = CountingSQLiteBackend(str(tmp_path / "count.db"))
        store = SessionHistoryStore(backend)
        try:
            await asyncio.gather(
                store.load("s1"),
                store.load("s2"),
                store.append("s1", Turn(query="q", answer="a")),
            )
            await store.load("s1")
        finally:
            await backend.close()

        assert backend.create_calls == 1

    async def test_read_failure_raises_storage_error(self, tmp_path: Path):
        """Test database failures surface as StorageError."""
        store = SessionHistoryStore(BrokenBackend(str(tmp_path / "broken.db")))

        with pytest.raises(StorageError):
            await store.load("s1")
        with pytest.raises(StorageError):
            await store.append("s1", Turn(query="q", answer="a"))

    async def test_get_history_store_uses_configured_database(self, sqlite_backend: SQLiteBackend):
        """Test the singleton store wraps the process database."""
        store = get_history_store()

        assert store.database is sqlite_backend
        assert get_history_store() is store


class TestDatabaseBackends:
    """Test backend selection and helpers."""

    @pytest.mark.parametrize(
        "url, path",
        [
            ("sqlite:///./storage/dexter_web_chat.db", "./storage/dexter_web_chat.db"),
            ("sqlite:////var/lib/dexter/chat.db", "/var/lib/dexter/chat.db"),
            ("sqlite://:memory:", ":memory:"),
            ("sqlite://", ":memory:"),
        ],
    )
    def test_sqlite_urls(self, url, path):
        """Test SQLite URLs map to file paths."""
        backend = create_backend(url)
        assert isinstance(backend, SQLiteBackend)
        assert backend.path == path

    def test_postgres_url(self):
        """Test PostgreSQL DSNs select the asyncpg backend."""
        backend = create_backend("postgresql://dexter@localhost/dexter", pool_size=3)
        assert isinstance(backend, PostgresBackend)
        assert backend.pool_size == 3
        assert backend.dialect == "postgresql"

    def test_unsupported_url(self):
        """Test unknown schemes are rejected."""
        with pytest.raises(ValueError):
            create_backend("mysql://localhost/dexter")

    def test_placeholder_translation(self):
        """Test '?' placeholders become numbered asyncpg parameters."""
        sql = "INSERT INTO t (a, b, c) VALUES (?, ?, ?)"
        assert PostgresBackend._translate(sql) == "INSERT INTO t (a, b, c) VALUES ($1, $2, $3)"

    async def test_in_memory_sqlite_ping(self):
        """Test an in-memory database answers health checks."""
        backend = SQLiteBackend(":memory:")
        try:
            assert await backend.ping() is True
        finally:
            await backend.close()

    async def test_unopened_sqlite_connection(self):
        """Test statements fail with a connection error when the database is not open."""
        backend = UnopenedSQLiteBackend(":memory:")

        with pytest.raises(ConnectionError, match="not open"):
            await backend.execute("SELECT 1")
        with pytest.raises(ConnectionError, match="not open"):
            await backend.fetch("SELECT 1")
        assert await backend.ping() is False

    async def test_health_check(self, sqlite_backend: SQLiteBackend):
        """Test the health check reports the configured database."""
        assert await check_database_health() == {"database": True}
