"""Revocation list for access and refresh tokens.

JWTs stay valid until ``exp``.  Logout and refresh-token rotation need
them dead sooner, so the ``jti`` of every revoked token is remembered
until the moment the token would have expired anyway.  After that the
signature check rejects it on its own and the entry can go.

Redis when configured (shared by every API instance, TTL does the
clean-up), a per-process dict otherwise.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from lms.core.metrics import TOKEN_BLACKLIST_CHECKS
from lms.db.redis import redis_pool


@runtime_checkable
class TokenBlacklist(Protocol):
    async def revoke(self, jti: str, expires_at: float) -> None:
        """Remember ``jti`` as revoked until ``expires_at`` (Unix seconds)."""
        ...

    async def is_revoked(self, jti: str) -> bool: ...


class InMemoryTokenBlacklist:
    def __init__(self) -> None:
        # jti -> expiry timestamp
        self._revoked: dict[str, float] = {}

    async def revoke(self, jti: str, expires_at: float) -> None:
        self._revoked[jti] = expires_at

    async def is_revoked(self, jti: str) -> bool:
        exp = self._revoked.get(jti)
        if exp is None:
            TOKEN_BLACKLIST_CHECKS.labels(result="valid").inc()
            return False
        if exp < time.time():
            del self._revoked[jti]
            TOKEN_BLACKLIST_CHECKS.labels(result="valid").inc()
            return False
        TOKEN_BLACKLIST_CHECKS.labels(result="revoked").inc()
        return True


class RedisTokenBlacklist:
    _PREFIX = "blacklist:jti:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def revoke(self, jti: str, expires_at: float) -> None:
        ttl_seconds = int(expires_at - time.time())
        if ttl_seconds <= 0:
            return
        # SETEX: value and TTL in one command, so no key is left without expiry
        await self._redis.setex(f"{self._PREFIX}{jti}", ttl_seconds, "1")

    async def is_revoked(self, jti: str) -> bool:
        revoked = bool(await self._redis.exists(f"{self._PREFIX}{jti}"))
        TOKEN_BLACKLIST_CHECKS.labels(result="revoked" if revoked else "valid").inc()
        return revoked


if redis_pool is not None:
    token_blacklist: TokenBlacklist = RedisTokenBlacklist(redis_pool)
else:
    token_blacklist = InMemoryTokenBlacklist()
