"""
Session History Store
=====================

Append-only persistence of finished chat turns keyed by session id.
The table is created lazily, once per process, on first use.
"""

from typing import Dict, List, Optional
import asyncio

from dexter_bridge.config.database import DatabaseBackend, get_database
from dexter_bridge.config.logging import get_logger
from dexter_bridge.models.schemas import Turn

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when chat history cannot be read or written."""

    pass


_SCHEMA: Dict[str, List[str]] = {
    "sqlite": [
        """
        CREATE TABLE IF NOT EXISTS web_chat_messages (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          session_id TEXT NOT NULL,
          query TEXT NOT NULL,
          answer TEXT NOT NULL,
          summary TEXT,
          created_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_web_chat_messages_session
        ON web_chat_messages(session_id, id)
        """,
    ],
    "postgresql": [
        """
        CREATE TABLE IF NOT EXISTS web_chat_messages (
          id BIGSERIAL PRIMARY KEY,
          session_id TEXT NOT NULL,
          query TEXT NOT NULL,
          answer TEXT NOT NULL,
          summary TEXT,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_web_chat_messages_session
        ON web_chat_messages(session_id, id)
        """,
    ],
}

_SELECT_TURNS = """
    SELECT query, answer, summary
    FROM web_chat_messages
    WHERE session_id = ?
    ORDER BY id ASC
"""

_INSERT_TURN = """
    INSERT INTO web_chat_messages (session_id, query, answer, summary)
    VALUES (?, ?, ?, ?)
"""


class SessionHistoryStore:
    """Loads and appends conversation turns for a session key."""

    def __init__(self, database: DatabaseBackend) -> None:
        self.database = database
        self.logger = logger.bind(component="history_store", dialect=database.dialect)

    async def load(self, session_id: str) -> List[Turn]:
        """
        Load all turns of a session in insertion order.

        Args:
            session_id: Session key

        Returns:
            Stored turns, empty if the session has none

        Raises:
            StorageError: If the database cannot be read
        """
        await ensure_schema(self.database)
        try:
            rows = await self.database.fetch(_SELECT_TURNS, (session_id,))
        except Exception as e:
            raise StorageError(f"Failed to load session history: {e}") from e

        return [
            Turn(
                query=str(row.get("query") or ""),
                answer=str(row.get("answer") or ""),
                summary=None if row.get("summary") is None else str(row["summary"]),
            )
            for row in rows
        ]

    async def append(self, session_id: str, turn: Turn) -> None:
        """
        Append a finished turn to a session.

        Raises:
            StorageError: If the durable write fails
        """
        await ensure_schema(self.database)
        try:
            await self.database.execute(
                _INSERT_TURN, (session_id, turn.query, turn.answer, turn.summary)
            )
        except Exception as e:
            raise StorageError(f"Failed to append session history: {e}") from e

        self.logger.debug("Turn appended", session_id=session_id, answer_length=len(turn.answer))


# One-way "schema ready" flag shared by the whole process
_schema_ready = False
_schema_lock: Optional[asyncio.Lock] = None


async def ensure_schema(database: DatabaseBackend) -> None:
    """
    Create the history table and index if needed.

    Runs the DDL at most once per process; concurrent first callers wait on the
    same lock and the second finds the flag already set.

    Raises:
        StorageError: If the schema cannot be created
    """
    global _schema_ready, _schema_lock
    if _schema_ready:
        return
    if _schema_lock is None:
        _schema_lock = asyncio.Lock()

    async with _schema_lock:
        if _schema_ready:
            return
        try:
            for statement in _SCHEMA[database.dialect]:
                await database.execute(statement)
        except Exception as e:
            raise StorageError(f"Failed to create chat history schema: {e}") from e
        _schema_ready = True
        logger.info("Chat history schema ready", dialect=database.dialect)


def reset_schema_state() -> None:
    """Forget that the schema was created (tests switch databases between cases)."""
    global _schema_ready, _schema_lock
    _schema_ready = False
    _schema_lock = None


_history_store: Optional[SessionHistoryStore] = None


def get_history_store() -> SessionHistoryStore:
    """Get or create the history store singleton over the configured database."""
    global _history_store
    if _history_store is None:
        _history_store = SessionHistoryStore(get_database())
    return _history_store


def close_history_store() -> None:
    """Drop the history store singleton."""
    global _history_store
    _history_store = None
