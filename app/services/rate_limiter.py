# =============================================================================
# Rate Limiter — Per-Client Request Budget
# =============================================================================
#
# One component, one interface:
#
#   decision = await limiter.hit(client_key)
#   decision.allowed / decision.retry_after
#
# BACKENDS (settings.rate_limit_backend):
#
#   "memory" — InMemoryRateLimiter. Fixed window per key: the first hit
#              opens a window of rate_limit_window_seconds, later hits
#              count against rate_limit_requests until it expires.
#              Counters live in this process only: they reset on restart
#              and each replica counts separately.
#
#   "redis"  — RedisRateLimiter. Sliding window on a sorted set (ZSET):
#              each hit adds its timestamp, entries older than the window
#              are pruned, the remaining count is compared to the limit.
#              Shared by every replica. If Redis is unreachable the
#              request is allowed and a warning logged.
#
# The limiter is created lazily once per process (get_rate_limiter) and
# is the only owner of its counters.
# =============================================================================

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol

from fastapi import HTTPException, Request

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0  # Seconds until the caller may retry


class RateLimiter(Protocol):
    async def hit(self, key: str) -> RateLimitDecision:
        """Count one request for `key` and decide whether it may proceed."""
        ...


# ---------------------------------------------------------------------------
# Backend 1: In-Process Fixed Window
# ---------------------------------------------------------------------------


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """
    Fixed-window counter held in a dict.

    hit() does not await, so on a single event loop each call is atomic
    and no lock is needed.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock=time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    async def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now >= window.reset_at:
            self._prune(now)
            self._windows[key] = _Window(count=1, reset_at=now + self._window_seconds)
            return RateLimitDecision(allowed=True)

        if window.count >= self._limit:
            return RateLimitDecision(
                allowed=False,
                retry_after=max(int(window.reset_at - now), 1),
            )

        window.count += 1
        return RateLimitDecision(allowed=True)

    def reset(self) -> None:
        self._windows.clear()

    def _prune(self, now: float) -> None:
        """Drop expired windows so idle clients do not accumulate."""
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]


# ---------------------------------------------------------------------------
# Backend 2: Redis Sliding Window
# ---------------------------------------------------------------------------


class RedisRateLimiter:
    """Sliding-window counter in Redis, shared across replicas."""

    def __init__(self, url: str, limit: int, window_seconds: int) -> None:
        self._url = url
        self._limit = limit
        self._window_seconds = window_seconds
        self._client = None

    def _get_client(self):
        """Lazily create and cache the async Redis client."""
        if self._client is None:
            import redis.asyncio as aioredis
            self._client = aioredis.from_url(self._url, decode_responses=True)
        return self._client

    async def hit(self, key: str) -> RateLimitDecision:
        redis_key = f"ratelimit:client:{key}"

        try:
            r = self._get_client()
            now = time.time()
            window_start = now - self._window_seconds

            pipe = r.pipeline()
            # Remove entries outside the window
            pipe.zremrangebyscore(redis_key, 0, window_start)
            # Count entries in the window
            pipe.zcard(redis_key)
            # Add current request
            pipe.zadd(redis_key, {str(now): now})
            # Set TTL to auto-cleanup
            pipe.expire(redis_key, self._window_seconds + 10)
            results = await pipe.execute()
        except Exception as e:
            logger.warning(
                "Rate limiter unavailable (Redis error): %s. "
                "Allowing request through.",
                e,
            )
            return RateLimitDecision(allowed=True)

        current_count = results[1]  # zcard result
        if current_count >= self._limit:
            return RateLimitDecision(
                allowed=False, retry_after=self._window_seconds,
            )
        return RateLimitDecision(allowed=True)


# ---------------------------------------------------------------------------
# Factory & FastAPI Dependency
# ---------------------------------------------------------------------------

_limiter: InMemoryRateLimiter | RedisRateLimiter | None = None


def get_rate_limiter() -> InMemoryRateLimiter | RedisRateLimiter:
    """Process-wide limiter chosen by settings.rate_limit_backend."""
    global _limiter
    if _limiter is None:
        if settings.rate_limit_backend == "redis":
            _limiter = RedisRateLimiter(
                settings.redis_url,
                settings.rate_limit_requests,
                settings.rate_limit_window_seconds,
            )
        else:
            _limiter = InMemoryRateLimiter(
                settings.rate_limit_requests,
                settings.rate_limit_window_seconds,
            )
        logger.info(
            "Initialized %s (%d requests / %ds)",
            type(_limiter).__name__,
            settings.rate_limit_requests,
            settings.rate_limit_window_seconds,
        )
    return _limiter


def client_key(request: Request) -> str:
    """First X-Forwarded-For address, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client:
        return request.client.host
    return "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """
    FastAPI dependency: reject the request once its client is over budget.

    Raises:
        HTTPException 429: Limit exceeded (includes Retry-After header).
    """
    if not settings.rate_limit_enabled:
        return

    key = client_key(request)
    decision = await get_rate_limiter().hit(key)
    if not decision.allowed:
        logger.warning("Rate limit exceeded for client %s", key)
        raise HTTPException(
            status_code=429,
            detail=(
                "Rate limit exceeded. "
                f"Limit: {settings.rate_limit_requests} requests per "
                f"{settings.rate_limit_window_seconds} seconds."
            ),
            headers={"Retry-After": str(decision.retry_after)},
        )
