"""Stores package for UNO session persistence."""

from .session_store import (
    SessionStore,
    MemorySessionStore,
    RedisSessionStore,
    create_session_store,
)

__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "create_session_store",
]
