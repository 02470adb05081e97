"""Session-scoped progress flags.

Storage:
  - In development (no REDIS_URL): in-memory dict with expiry timestamps.
  - In production: Redis keys with a TTL equal to the session lifetime.

Keys per session id:
  rulesgate:session:{sid}:unlocked   "1" once the form unlocked
  rulesgate:session:{sid}:completed  set of completed section ordinals
  rulesgate:session:{sid}:signed     "1" once an agreement was stored

Every write refreshes the TTL of the key it touches, so an abandoned
session simply expires; expiry is what "the session ended" means here.
"""

import time
from typing import Callable

import redis.asyncio as redis

KEY_PREFIX = "rulesgate:session"


def _key(session_id: str, name: str) -> str:
    return f"{KEY_PREFIX}:{session_id}:{name}"


class MemorySessionFlagStore:
    name = "memory"

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # {key: (value, expires_at)}
        self._data: dict[str, tuple[object, float]] = {}

    def _get(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def _set(self, key: str, value) -> None:
        now = self._clock()
        self._sweep(now)
        self._data[key] = (value, now + self.ttl_seconds)

    def _sweep(self, now: float) -> None:
        """Drop every expired key, not just the one being touched."""
        expired = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
        for k in expired:
            del self._data[k]

    def key_count(self) -> int:
        return len(self._data)

    async def is_unlocked(self, session_id: str) -> bool:
        return self._get(_key(session_id, "unlocked")) is True

    async def mark_unlocked(self, session_id: str) -> None:
        self._set(_key(session_id, "unlocked"), True)

    async def completed(self, session_id: str) -> set[int]:
        return set(self._get(_key(session_id, "completed")) or ())

    async def add_completed(self, session_id: str, ordinal: int) -> None:
        key = _key(session_id, "completed")
        current = set(self._get(key) or ())
        current.add(ordinal)
        self._set(key, frozenset(current))

    async def is_signed(self, session_id: str) -> bool:
        return self._get(_key(session_id, "signed")) is True

    async def mark_signed(self, session_id: str) -> None:
        self._set(_key(session_id, "signed"), True)

    async def ping(self) -> None:
        return None


class RedisSessionFlagStore:
    name = "redis"

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self._redis = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int) -> "RedisSessionFlagStore":
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
        return cls(client, ttl_seconds)

    async def is_unlocked(self, session_id: str) -> bool:
        return await self._redis.get(_key(session_id, "unlocked")) == "1"

    async def mark_unlocked(self, session_id: str) -> None:
        await self._redis.set(_key(session_id, "unlocked"), "1", ex=self.ttl_seconds)

    async def completed(self, session_id: str) -> set[int]:
        members = await self._redis.smembers(_key(session_id, "completed"))
        return {int(m) for m in members}

    async def add_completed(self, session_id: str, ordinal: int) -> None:
        key = _key(session_id, "completed")
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.sadd(key, ordinal)
            pipe.expire(key, self.ttl_seconds)
            await pipe.execute()

    async def is_signed(self, session_id: str) -> bool:
        return await self._redis.get(_key(session_id, "signed")) == "1"

    async def mark_signed(self, session_id: str) -> None:
        await self._redis.set(_key(session_id, "signed"), "1", ex=self.ttl_seconds)

    async def ping(self) -> None:
        await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()
