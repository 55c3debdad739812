"""Read-through cache for enrollment progress snapshots.

GET /v1/courses/{id}/progress is the polled endpoint: a learner's
dashboard re-reads it after every lecture.  The flow:

  read  -> cache hit  -> return
        -> cache miss -> load user from the repo -> store if still absent -> return
  write -> (enroll, complete) -> overwrite the key with the saved snapshot
        -> (cascade prune) -> delete every key of the course

A miss only fills an empty key.  A reader holding a snapshot from before
a completion therefore cannot replace the one the completion wrote.

Keys are ``progress:{course_id}:{user_id}``.  Course first, so a cascade
prune can drop every learner of one course with a single pattern
delete.  The TTL is the backstop for an invalidation that never ran.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lms.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store only when ``key`` is missing; True if the value was written."""
        ...

    async def delete(self, key: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a trailing-``*`` glob."""
        ...


def progress_key(course_id: str, user_id: str) -> str:
    return f"progress:{course_id}:{user_id}"


def progress_pattern(course_id: str) -> str:
    return f"progress:{course_id}:*"


class InMemoryCacheService:
    """No TTL enforcement; tests clear ``_store`` between cases."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if key in self._store:
            return False
        self._store[key] = value
        return True

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        return bool(
            await self._redis.set(f"{self._PREFIX}{key}", value, ex=ttl_seconds, nx=True)
        )

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace walk
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
