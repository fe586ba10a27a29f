"""Payload caches with an explicit read-then-fill contract.

Callers first ``try_read(key)``; on a miss they ``compute_and_store(key,
compute, ttl_seconds)``. The TTL is always passed by the caller, so freshness
is a per-resource decision (odds, form, standings) rather than a cache-wide
one.
"""

from __future__ import annotations

import asyncio
import json
import time
import weakref
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, MutableMapping, Optional, Protocol, Tuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pitchedge.core.logger import get_logger

log = get_logger("data.cache")


class PayloadCache(Protocol):
    async def try_read(self, key: str) -> Optional[Any]: ...

    async def compute_and_store(
        self, key: str, compute: Callable[[], Awaitable[Any]], ttl_seconds: int
    ) -> Any: ...


class TTLCache:
    """Process-local cache. ``clock`` returns seconds; inject a fake in tests.

    Expired entries are pruned on every write and per-key fill locks live only
    while a fill is in flight, so a long-running process stays bounded by the
    set of live keys.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._locks: MutableMapping[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def try_read(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def _prune(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def compute_and_store(
        self, key: str, compute: Callable[[], Awaitable[Any]], ttl_seconds: int
    ) -> Any:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        async with lock:
            # Another waiter may have filled it while we queued.
            cached = await self.try_read(key)
            if cached is not None:
                return cached
            value = await compute()
            now = self._clock()
            self._prune(now)
            if value is not None and ttl_seconds > 0:
                self._entries[key] = (now + ttl_seconds, value)
            return value

    def __len__(self) -> int:
        return len(self._entries)


async def get_cached_payload(session: AsyncSession, cache_key: str) -> dict | None:
    res = await session.execute(
        text(
            """
            SELECT payload FROM api_cache
            WHERE cache_key=:k AND expires_at > now()
            """
        ),
        {"k": cache_key},
    )
    row = res.first()
    return row[0] if row else None


async def set_cached_payload(session: AsyncSession, cache_key: str, payload: Any, ttl_seconds: int) -> None:
    expires = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    payload_json = payload
    if payload is not None and not isinstance(payload, str):
        payload_json = json.dumps(payload, ensure_ascii=False)
    await session.execute(
        text(
            """
            INSERT INTO api_cache(cache_key, payload, expires_at)
            VALUES(:k, CAST(:p AS jsonb), :e)
            ON CONFLICT (cache_key)
            DO UPDATE SET payload=CAST(:p AS jsonb), expires_at=:e
            """
        ),
        {"k": cache_key, "p": payload_json, "e": expires},
    )


class SqlPayloadCache:
    """api_cache-backed cache shared across workers."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._lock = asyncio.Lock()

    async def try_read(self, key: str) -> Optional[Any]:
        # One AsyncSession cannot run statements concurrently.
        async with self._lock:
            return await get_cached_payload(self.session, key)

    async def compute_and_store(
        self, key: str, compute: Callable[[], Awaitable[Any]], ttl_seconds: int
    ) -> Any:
        value = await compute()
        if value is not None and ttl_seconds > 0:
            async with self._lock:
                await set_cached_payload(self.session, key, value, ttl_seconds)
        return value
