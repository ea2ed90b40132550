"""Key-value store contract backing every queue structure.

The queue treats the store as an opaque map with per-key expiry. There are
no transactions and no compare-and-swap, so concurrent writers to the same
key follow last-writer-wins semantics.
"""

import copy
import json
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import asyncpg

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract get/set/delete store with per-key TTL."""

    @abstractmethod
    async def get(self, key: str, fallback: Optional[Callable[[], Any]] = None) -> Any:
        """
        Get a stored value.

        Returns the value stored under ``key`` or, when the key is absent or
        expired, the result of ``fallback()`` (``None`` without a fallback).
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Store a JSON-compatible value. ``ttl_seconds=None`` never expires."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        pass

    @abstractmethod
    async def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store.

    Values are deep copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}

    def _expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and expires_at <= self._clock()

    async def get(self, key: str, fallback: Optional[Callable[[], Any]] = None) -> Any:
        entry = self._entries.get(key)
        if entry is not None:
            value, expires_at = entry
            if not self._expired(expires_at):
                return copy.deepcopy(value)
            del self._entries[key]
        return fallback() if fallback is not None else None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock() + ttl_seconds
        self._entries[key] = (copy.deepcopy(value), expires_at)
        return True

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self) -> int:
        expired = [
            key
            for key, (_, expires_at) in self._entries.items()
            if self._expired(expires_at)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class PostgresKeyValueStore(KeyValueStore):
    """Store backed by the ``kv_entries`` table (see ``kv_jobs.ddl``)."""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def get(self, key: str, fallback: Optional[Callable[[], Any]] = None) -> Any:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT value FROM kv_entries
                WHERE key = $1
                  AND (expires_at IS NULL OR expires_at > now())
                """,
                key,
            )

        if not row:
            return fallback() if fallback is not None else None

        value = row["value"]
        return json.loads(value) if isinstance(value, str) else value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)

        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO kv_entries (key, value, expires_at, updated_at)
                VALUES ($1, $2::jsonb, $3, now())
                ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value,
                    expires_at = EXCLUDED.expires_at,
                    updated_at = now()
                """,
                key,
                json.dumps(value),
                expires_at,
            )
        return True

    async def delete(self, key: str) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute("DELETE FROM kv_entries WHERE key = $1", key)

    async def purge_expired(self) -> int:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM kv_entries WHERE expires_at IS NOT NULL AND expires_at <= now()"
            )

        # Result string looks like "DELETE 5"
        count = int(result.split()[-1]) if result else 0
        if count:
            logger.info(f"Purged {count} expired kv entries")
        return count
