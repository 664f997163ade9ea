"""
Chat History Storage
====================

Durable, append-only per-session conversation history.
"""

from .history_store import (
    SessionHistoryStore,
    StorageError,
    ensure_schema,
    get_history_store,
    close_history_store,
)

__all__ = [
    "SessionHistoryStore",
    "StorageError",
    "ensure_schema",
    "get_history_store",
    "close_history_store",
]
