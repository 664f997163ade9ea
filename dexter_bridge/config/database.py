"""
Database Configuration
=====================

Chat history database connections.
Provides a small async row-store interface over PostgreSQL (asyncpg) or SQLite (aiosqlite),
selected from the configured database URL.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List, Sequence
import asyncio
import re
from pathlib import Path

import aiosqlite  # type: ignore[import-untyped]
import asyncpg  # type: ignore[import-untyped]

from .settings import get_settings
from .logging import get_logger

logger = get_logger(__name__)

_PLACEHOLDER_RE = re.compile(r"\?")


class DatabaseBackend(ABC):
    """Minimal async row store used by the history store."""

    dialect: str = ""

    @abstractmethod
    async def connect(self) -> None:
        """Open connections."""

    @abstractmethod
    async def close(self) -> None:
        """Close connections."""

    @abstractmethod
    async def execute(self, sql: str, args: Sequence[Any] = ()) -> None:
        """Run a statement that returns no rows. Placeholders are written as '?'."""

    @abstractmethod
    async def fetch(self, sql: str, args: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query and return its rows as dictionaries."""

    async def ping(self) -> bool:
        """Check connectivity."""
        try:
            await self.fetch("SELECT 1 AS ok")
            return True
        except Exception as e:
            logger.error("Database health check failed", dialect=self.dialect, error=str(e))
            return False


class PostgresBackend(DatabaseBackend):
    """asyncpg connection pool backend."""

    dialect = "postgresql"

    def __init__(self, url: str, pool_size: int = 10) -> None:
        self.url = url
        self.pool_size = pool_size
        self._pool: Optional[asyncpg.Pool] = None  # type: ignore[type-arg]
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        async with self._lock:
            if self._pool is not None:
                return
            try:
                self._pool = await asyncpg.create_pool(  # type: ignore[attr-defined]
                    self.url, min_size=1, max_size=self.pool_size, command_timeout=60
                )
                logger.info("PostgreSQL connection established")
            except Exception as e:
                logger.error("Failed to connect to PostgreSQL", error=str(e))
                raise

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()  # type: ignore[attr-defined]
            self._pool = None
            logger.info("PostgreSQL connection closed")

    @staticmethod
    def _translate(sql: str) -> str:
        counter = iter(range(1, sql.count("?") + 1))
        return _PLACEHOLDER_RE.sub(lambda _: f"${next(counter)}", sql)

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> None:
        await self.connect()
        async with self._pool.acquire() as connection:  # type: ignore[union-attr]
            await connection.execute(self._translate(sql), *args)

    async def fetch(self, sql: str, args: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        await self.connect()
        async with self._pool.acquire() as connection:  # type: ignore[union-attr]
            rows = await connection.fetch(self._translate(sql), *args)
        return [dict(row) for row in rows]


class SQLiteBackend(DatabaseBackend):
    """aiosqlite single-connection backend."""

    dialect = "sqlite"

    def __init__(self, path: str) -> None:
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        async with self._lock:
            if self._conn is not None:
                return
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            try:
                conn = await aiosqlite.connect(self.path)
                conn.row_factory = aiosqlite.Row
                self._conn = conn
                logger.info("SQLite connection established", path=self.path)
            except Exception as e:
                logger.error("Failed to open SQLite database", path=self.path, error=str(e))
                raise

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite connection closed", path=self.path)

    async def _connection(self) -> aiosqlite.Connection:
        await self.connect()
        if self._conn is None:
            raise ConnectionError(f"SQLite database is not open: {self.path}")
        return self._conn

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> None:
        conn = await self._connection()
        await conn.execute(sql, tuple(args))
        await conn.commit()

    async def fetch(self, sql: str, args: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        conn = await self._connection()
        async with conn.execute(sql, tuple(args)) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]


def create_backend(url: str, pool_size: int = 10) -> DatabaseBackend:
    """
    Create a backend for a database URL.

    Args:
        url: ``sqlite:///relative/path.db``, ``sqlite:////abs/path.db``, ``sqlite://:memory:``
            or a ``postgresql://`` DSN
        pool_size: Maximum PostgreSQL pool size

    Returns:
        Unconnected database backend
    """
    if url.startswith(("postgresql://", "postgres://")):
        return PostgresBackend(url, pool_size=pool_size)
    if url.startswith("sqlite://"):
        path = url[len("sqlite://") :]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteBackend(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {url}")


class DatabaseManager:
    """Owns the process-wide chat history backend."""

    def __init__(self) -> None:
        self._backend: Optional[DatabaseBackend] = None

    @property
    def backend(self) -> DatabaseBackend:
        """Get the backend, creating it from settings on first access."""
        if self._backend is None:
            settings = get_settings()
            self._backend = create_backend(settings.database_url, settings.database_pool_size)
        return self._backend

    def use_backend(self, backend: Optional[DatabaseBackend]) -> None:
        """Replace the backend (used by tests and alternative deployments)."""
        self._backend = backend

    async def initialize(self) -> None:
        """Initialize database connections."""
        await self.backend.connect()
        logger.info("Database connections initialized", dialect=self.backend.dialect)

    async def close(self) -> None:
        """Close database connections."""
        if self._backend is not None:
            await self._backend.close()


# Global database manager instance
db_manager = DatabaseManager()


def get_database() -> DatabaseBackend:
    """Get the chat history database backend."""
    return db_manager.backend


async def initialize_databases() -> None:
    """Initialize all database connections."""
    await db_manager.initialize()


async def close_databases() -> None:
    """Close all database connections."""
    await db_manager.close()


async def check_database_health() -> Dict[str, bool]:
    """Check database connection health."""
    return {"database": await db_manager.backend.ping()}
