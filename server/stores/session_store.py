"""
Session snapshot persistence.

A game session saves a full JSON snapshot after every successful transition
and deletes it on teardown. The store is a cache for resuming sessions, not
the source of truth: the in-process session is authoritative while it lives,
and a failed save is logged by the caller without affecting gameplay.

Two implementations:
- MemorySessionStore: dict-backed, the default when no REDIS_URL is set
- RedisSessionStore: redis.asyncio, JSON values with a TTL

Redis key patterns:
- uno:session:{session_id}   -> JSON (session snapshot)
- uno:sessions:active        -> Set (session IDs with a snapshot)
"""

import json
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class SessionStore:
    """Load/save interface for session snapshots."""

    async def save(self, session_id: str, snapshot: dict) -> None:
        raise NotImplementedError

    async def load(self, session_id: str) -> Optional[dict]:
        raise NotImplementedError

    async def delete(self, session_id: str) -> None:
        raise NotImplementedError

    async def active_sessions(self) -> set[str]:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class MemorySessionStore(SessionStore):
    """In-process store. Snapshots round-trip through JSON like the Redis store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def save(self, session_id: str, snapshot: dict) -> None:
        self._data[session_id] = json.dumps(snapshot)

    async def load(self, session_id: str) -> Optional[dict]:
        data = self._data.get(session_id)
        if data is None:
            return None
        return json.loads(data)

    async def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    async def active_sessions(self) -> set[str]:
        return set(self._data)


class RedisSessionStore(SessionStore):
    """Redis-backed session snapshot store."""

    # Key patterns
    SESSION_KEY = "uno:session:{session_id}"
    ACTIVE_SESSIONS_KEY = "uno:sessions:active"

    # Abandoned snapshots expire on their own
    SESSION_TTL = timedelta(hours=24)

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize the store with a Redis client.

        Args:
            redis_client: Async Redis client.
        """
        self.redis = redis_client

    @classmethod
    async def create(cls, redis_url: str) -> "RedisSessionStore":
        """
        Create a RedisSessionStore with a new Redis connection.

        Args:
            redis_url: Redis connection URL.

        Returns:
            Configured store instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("SessionStore connected to Redis")
        return cls(client)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def save(self, session_id: str, snapshot: dict) -> None:
        """
        Save a session snapshot and mark the session active.

        Args:
            session_id: Session code.
            snapshot: Snapshot dict (JSON serialized).
        """
        pipe = self.redis.pipeline()
        pipe.set(
            self.SESSION_KEY.format(session_id=session_id),
            json.dumps(snapshot),
            ex=int(self.SESSION_TTL.total_seconds()),
        )
        pipe.sadd(self.ACTIVE_SESSIONS_KEY, session_id)
        await pipe.execute()
        logger.debug(f"Saved snapshot for session {session_id}")

    async def load(self, session_id: str) -> Optional[dict]:
        """
        Load a session snapshot.

        Returns:
            Snapshot dict, or None if not found.
        """
        data = await self.redis.get(self.SESSION_KEY.format(session_id=session_id))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        return json.loads(data)

    async def delete(self, session_id: str) -> None:
        pipe = self.redis.pipeline()
        pipe.delete(self.SESSION_KEY.format(session_id=session_id))
        pipe.srem(self.ACTIVE_SESSIONS_KEY, session_id)
        await pipe.execute()
        logger.debug(f"Deleted snapshot for session {session_id}")

    async def active_sessions(self) -> set[str]:
        """
        Get all session IDs with a stored snapshot.

        Returns:
            Set of session codes.
        """
        sessions = await self.redis.smembers(self.ACTIVE_SESSIONS_KEY)
        return {s.decode() if isinstance(s, bytes) else s for s in sessions}


async def create_session_store(redis_url: str = "") -> SessionStore:
    """
    Build the configured store: Redis when a URL is given, memory otherwise.

    Args:
        redis_url: Redis connection URL, or empty for the in-memory store.
    """
    if redis_url:
        return await RedisSessionStore.create(redis_url)
    logger.info("No REDIS_URL configured, using in-memory session store")
    return MemorySessionStore()
