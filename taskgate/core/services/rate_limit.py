"""
Request rate limiting with in-memory and Redis backends.

The limiter instance is built once at startup (see ``taskgate.main``) and
stored on ``app.state.rate_limiter``; FastAPI dependencies created by
:func:`rate_limit_by_ip` read it from there.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal

from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError

from taskgate.core.config import rate_limit_logger
from taskgate.core.exceptions.types import RateLimited


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed.
        remaining: Number of remaining requests in the current window.
        limit: The maximum number of requests allowed.
        reset_at: When the rate limit window resets.
        retry_after: Seconds until the client can retry (only if not allowed).
    """

    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime
    retry_after: int | None = None


class RateLimitBackend(ABC):
    @abstractmethod
    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        """Count one request against ``key`` and report whether it is allowed."""

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget all requests counted for ``key``."""


class MemoryBackend(RateLimitBackend):
    """
    Fixed-window counters in a dictionary.

    Suitable for a single process; use RedisBackend when several API
    instances must share counters.
    """

    def __init__(self, sweep_interval_seconds: int = 60):
        self._store: dict[str, tuple[int, datetime]] = {}
        self._sweep_interval = timedelta(seconds=sweep_interval_seconds)
        self._next_sweep = datetime.now(timezone.utc) + self._sweep_interval

    def _evict_expired(self, now: datetime) -> None:
        """Drop every counter whose window has closed."""
        if now < self._next_sweep:
            return
        expired = [key for key, (_, reset_at) in self._store.items() if now >= reset_at]
        for key in expired:
            del self._store[key]
        self._next_sweep = now + self._sweep_interval

    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        now = datetime.now(timezone.utc)
        self._evict_expired(now)
        count, reset_at = self._store.get(key, (0, now))

        if now >= reset_at:
            count, reset_at = 0, now + timedelta(seconds=window)

        if count >= limit:
            retry_after = max(1, int((reset_at - now).total_seconds()))
            rate_limit_logger.warning(
                f"Rate limit exceeded for key: {key}, retry after: {retry_after}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=limit,
                reset_at=reset_at,
                retry_after=retry_after,
            )

        self._store[key] = (count + 1, reset_at)
        return RateLimitResult(
            allowed=True,
            remaining=limit - count - 1,
            limit=limit,
            reset_at=reset_at,
        )

    async def reset(self, key: str) -> None:
        self._store.pop(key, None)


class RedisBackend(RateLimitBackend):
    """
    Redis INCR/EXPIRE counters shared across processes.

    Redis errors fail open: the request is allowed and a warning logged.
    """

    def __init__(self, client: Redis):
        self.client = client

    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        now = datetime.now(timezone.utc)
        try:
            count = await self.client.incr(key)
            if count == 1:
                await self.client.expire(key, window)
            ttl = await self.client.ttl(key)
        except RedisError as e:
            rate_limit_logger.warning(
                f"Redis error during rate limit check for key: {key}, allowing request: {e}"
            )
            return RateLimitResult(
                allowed=True,
                remaining=limit - 1,
                limit=limit,
                reset_at=now + timedelta(seconds=window),
            )

        if ttl is None or ttl < 0:
            ttl = window
        reset_at = now + timedelta(seconds=ttl)

        if count > limit:
            rate_limit_logger.warning(
                f"Rate limit exceeded for key: {key}, count: {count}, retry after: {ttl}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=limit,
                reset_at=reset_at,
                retry_after=max(1, ttl),
            )

        return RateLimitResult(
            allowed=True,
            remaining=limit - count,
            limit=limit,
            reset_at=reset_at,
        )

    async def reset(self, key: str) -> None:
        await self.client.delete(key)


class RateLimiter:
    def __init__(self, backend: RateLimitBackend):
        self._backend = backend

    async def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        return await self._backend.check(key, limit, window)

    async def reset(self, key: str) -> None:
        await self._backend.reset(key)


def format_rate_limit_key(
    key_type: Literal["ip", "user", "email"],
    identifier: str,
    endpoint: str,
) -> str:
    """
    Example:
        >>> format_rate_limit_key("ip", "192.168.1.1", "/auth/login")
        'rate_limit:ip:192.168.1.1:/auth/login'
    """
    return f"rate_limit:{key_type}:{identifier}:{endpoint}"


def rate_limit_by_ip(limit: int, window: int) -> Callable:
    """
    Create a FastAPI dependency limiting requests per client IP and path.

    Raises:
        RateLimited: With ``retry_after`` once the limit is exceeded.
    """

    async def dependency(request: Request) -> RateLimitResult:
        limiter: RateLimiter = request.app.state.rate_limiter
        client_ip = request.client.host if request.client else "unknown"
        key = format_rate_limit_key("ip", client_ip, request.url.path)

        result = await limiter.check(key, limit, window)
        if not result.allowed:
            raise RateLimited(
                f"Rate limit exceeded. Try again in {result.retry_after} seconds.",
                retry_after=result.retry_after,
            )
        return result

    return dependency


__all__ = [
    "RateLimitResult",
    "RateLimitBackend",
    "MemoryBackend",
    "RedisBackend",
    "RateLimiter",
    "format_rate_limit_key",
    "rate_limit_by_ip",
]
