# =============================================================================
# Unit Tests — Rate Limiter
# =============================================================================
#
# No Redis needed: the Redis backend is exercised through a mocked client.
# =============================================================================

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from app.config import settings
from app.services.rate_limiter import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    client_key,
    enforce_rate_limit,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _request(headers: dict | None = None, host: str | None = "10.0.0.1"):
    client = SimpleNamespace(host=host) if host else None
    return SimpleNamespace(headers=headers or {}, client=client)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class TestInMemoryRateLimiter:
    """Tests for the fixed-window in-process limiter."""

    def test_allows_up_to_limit_then_blocks(self):
        limiter = InMemoryRateLimiter(limit=3, window_seconds=3600, clock=FakeClock())
        decisions = [_run(limiter.hit("1.2.3.4")) for _ in range(4)]

        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert decisions[3].retry_after == 3600

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
        assert _run(limiter.hit("a")).allowed
        assert not _run(limiter.hit("a")).allowed
        assert _run(limiter.hit("b")).allowed

    def test_window_expiry_resets_count(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert _run(limiter.hit("a")).allowed
        assert not _run(limiter.hit("a")).allowed

        clock.now += 59.5
        blocked = _run(limiter.hit("a"))
        assert not blocked.allowed
        assert blocked.retry_after == 1

        clock.now += 1
        assert _run(limiter.hit("a")).allowed

    def test_reset(self):
        limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
        _run(limiter.hit("a"))
        limiter.reset()
        assert _run(limiter.hit("a")).allowed


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


def _redis_with_count(count: int) -> MagicMock:
    mock_pipe = MagicMock()
    mock_pipe.execute = AsyncMock(return_value=[0, count, 1, True])
    mock_redis = MagicMock()
    mock_redis.pipeline.return_value = mock_pipe
    return mock_redis


class TestRedisRateLimiter:
    """Tests for the sliding-window Redis limiter."""

    def test_under_limit_allowed(self):
        limiter = RedisRateLimiter("redis://localhost:6379/2", limit=30, window_seconds=3600)
        with patch.object(limiter, "_get_client", return_value=_redis_with_count(5)):
            assert _run(limiter.hit("1.2.3.4")).allowed

    def test_over_limit_blocked(self):
        limiter = RedisRateLimiter("redis://localhost:6379/2", limit=30, window_seconds=3600)
        with patch.object(limiter, "_get_client", return_value=_redis_with_count(30)):
            decision = _run(limiter.hit("1.2.3.4"))
        assert not decision.allowed
        assert decision.retry_after == 3600

    def test_redis_unavailable_allows(self):
        limiter = RedisRateLimiter("redis://localhost:6379/2", limit=30, window_seconds=3600)
        with patch.object(limiter, "_get_client",
                          side_effect=ConnectionError("Redis down")):
            assert _run(limiter.hit("1.2.3.4")).allowed

    def test_key_is_namespaced(self):
        limiter = RedisRateLimiter("redis://localhost:6379/2", limit=30, window_seconds=3600)
        mock_redis = _redis_with_count(0)
        with patch.object(limiter, "_get_client", return_value=mock_redis):
            _run(limiter.hit("1.2.3.4"))
        pipe = mock_redis.pipeline.return_value
        assert pipe.zcard.call_args.args[0] == "ratelimit:client:1.2.3.4"


# ---------------------------------------------------------------------------
# Client key & FastAPI dependency
# ---------------------------------------------------------------------------


class TestClientKey:
    """Tests for client identification."""

    def test_forwarded_for_first_entry(self):
        request = _request({"x-forwarded-for": "203.0.113.7, 10.0.0.2"})
        assert client_key(request) == "203.0.113.7"

    def test_falls_back_to_peer(self):
        assert client_key(_request()) == "10.0.0.1"

    def test_unknown_when_no_peer(self):
        assert client_key(_request(host=None)) == "unknown"


class TestEnforceRateLimit:
    """Tests for the enforce_rate_limit dependency."""

    def test_blocks_with_retry_after(self):
        limiter = InMemoryRateLimiter(limit=1, window_seconds=3600, clock=FakeClock())
        with patch("app.services.rate_limiter.get_rate_limiter", return_value=limiter):
            _run(enforce_rate_limit(_request()))
            with pytest.raises(HTTPException) as exc_info:
                _run(enforce_rate_limit(_request()))

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "3600"

    def test_disabled_is_noop(self):
        limiter = MagicMock()
        with patch.object(settings, "rate_limit_enabled", False), \
             patch("app.services.rate_limiter.get_rate_limiter", return_value=limiter):
            _run(enforce_rate_limit(_request()))
        limiter.hit.assert_not_called()
