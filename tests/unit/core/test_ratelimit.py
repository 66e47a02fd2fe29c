"""Unit tests for the per-actor rate limiters."""

from __future__ import annotations

import pytest
from django.core.cache import cache

from modules.core.ratelimit import (
    CacheRateLimiter,
    InMemoryRateLimiter,
    order_rate_limiter,
    strict_rate_limiter,
)

pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = InMemoryRateLimiter("t", 3, 60, clock=FakeClock())
        assert [limiter.check_and_increment("a") for _ in range(4)] == [
            True,
            True,
            True,
            False,
        ]

    def test_counts_per_actor(self):
        limiter = InMemoryRateLimiter("t", 1, 60, clock=FakeClock())
        assert limiter.check_and_increment("a")
        assert limiter.check_and_increment("b")
        assert not limiter.check_and_increment("a")

    def test_window_resets(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter("t", 1, 60, clock=clock)
        assert limiter.check_and_increment("a")
        assert not limiter.check_and_increment("a")

        clock.now += 60
        assert limiter.check_and_increment("a")

    def test_cleanup_drops_expired(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter("t", 5, 10, clock=clock)
        limiter.check_and_increment("a")
        clock.now += 5
        limiter.check_and_increment("b")
        clock.now += 6

        assert limiter.cleanup() == 1
        assert limiter.cleanup() == 0


class TestCacheRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = CacheRateLimiter("t", 2, 60)
        assert limiter.check_and_increment("a")
        assert limiter.check_and_increment("a")
        assert not limiter.check_and_increment("a")
        assert limiter.check_and_increment("b")

    def test_scopes_are_independent(self):
        CacheRateLimiter("one", 1, 60).check_and_increment("a")
        assert CacheRateLimiter("two", 1, 60).check_and_increment("a")

    def test_expired_key_starts_new_window(self):
        limiter = CacheRateLimiter("t", 1, 60)
        limiter.check_and_increment("a")
        cache.delete("ratelimit:t:a")
        assert limiter.check_and_increment("a")

    def test_factories_read_settings(self, settings):
        settings.ORDER_RATE_LIMIT = 7
        settings.STRICT_RATE_LIMIT = 3
        settings.RATE_LIMIT_WINDOW_SECONDS = 30
        assert order_rate_limiter().max_requests == 7
        assert strict_rate_limiter().max_requests == 3
        assert strict_rate_limiter().window_seconds == 30

    def test_no_global_drf_throttles(self):
        from django.conf import settings as django_settings
        from rest_framework.settings import api_settings

        assert "DEFAULT_THROTTLE_CLASSES" not in django_settings.REST_FRAMEWORK
        assert api_settings.DEFAULT_THROTTLE_CLASSES == []
