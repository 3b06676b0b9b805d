"""Key-value store collaborator for account balances and rate-limit windows.

Two implementations share one async interface: ``RedisKeyValueStore`` over
``redis.asyncio`` and ``InMemoryKeyValueStore`` for tests and single-process runs.
Every backend failure surfaces as ``KeyValueStoreError`` so callers have one
exception to treat as "store unavailable".
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

from admission.config import ACCOUNT_STORE, REDIS_SOCKET_TIMEOUT, REDIS_URL
from api.utils.debug import print__admission_debug


class KeyValueStoreError(Exception):
    """The backing store could not be reached or rejected the command."""


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...

    async def incr(self, key: str, amount: int = 1) -> int: ...

    async def expire(self, key: str, ttl_seconds: int) -> None: ...

    async def ttl(self, key: str) -> int: ...

    async def delete(self, key: str) -> None: ...


# ==============================================================================
# REDIS
# ==============================================================================
class RedisKeyValueStore:
    def __init__(self, client):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        client = redis_asyncio.from_url(
            url,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise KeyValueStoreError(f"GET failed: {exc}") from exc

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise KeyValueStoreError(f"SET failed: {exc}") from exc

    async def incr(self, key: str, amount: int = 1) -> int:
        try:
            return int(await self._client.incrby(key, amount))
        except RedisError as exc:
            raise KeyValueStoreError(f"INCRBY failed: {exc}") from exc

    async def expire(self, key: str, ttl_seconds: int) -> None:
        try:
            await self._client.expire(key, ttl_seconds)
        except RedisError as exc:
            raise KeyValueStoreError(f"EXPIRE failed: {exc}") from exc

    async def ttl(self, key: str) -> int:
        try:
            return int(await self._client.ttl(key))
        except RedisError as exc:
            raise KeyValueStoreError(f"TTL failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise KeyValueStoreError(f"DEL failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise KeyValueStoreError(f"PING failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


# ==============================================================================
# IN-MEMORY
# ==============================================================================
class InMemoryKeyValueStore:
    """Dict-backed store with Redis-like TTL semantics and an injectable clock.

    ``ttl`` returns -2 for a missing key and -1 for a key without expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl_seconds if ttl_seconds else None
            self._data[key] = (str(value), expires_at)

    async def incr(self, key: str, amount: int = 1) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                value, expires_at = 0, None
            else:
                value, expires_at = int(entry[0]), entry[1]
            value += amount
            self._data[key] = (str(value), expires_at)
            return value

    async def expire(self, key: str, ttl_seconds: int) -> None:
        async with self._lock:
            entry = self._live(key)
            if entry is not None:
                self._data[key] = (entry[0], self._clock() + ttl_seconds)

    async def ttl(self, key: str) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return max(0, int(round(entry[1] - self._clock())))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()


def create_key_value_store() -> Optional[KeyValueStore]:
    """Build the configured store; ``None`` means unconfigured (fail closed)."""
    if ACCOUNT_STORE == "memory":
        print__admission_debug("🧠 KV STORE: using in-memory store")
        return InMemoryKeyValueStore()
    if not REDIS_URL:
        print__admission_debug(
            "⚠️ KV STORE: REDIS_URL not set, costed operations will be denied"
        )
        return None
    print__admission_debug("🔌 KV STORE: using Redis")
    return RedisKeyValueStore.from_url(REDIS_URL)
