"""Per-actor rate limiters.

Advisory, best-effort protection against abusive callers: a fixed window
per actor id, counting calls and answering whether one more is allowed.

- ``CacheRateLimiter`` keeps counters in the Django cache (Redis in
  production), so every app instance shares them.
- ``InMemoryRateLimiter`` keeps counters in a process-local dict, for
  single-instance deployments and tests.

Both satisfy ``IRateLimiter`` and are injected into the services.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Protocol, Tuple

import structlog
from django.conf import settings
from django.core.cache import BaseCache, cache as default_cache

logger = structlog.get_logger(__name__)


class IRateLimiter(Protocol):
    """Limiter contract: ``True`` means the call is allowed."""

    def check_and_increment(self, actor_id: str) -> bool: ...


class CacheRateLimiter:
    """Fixed-window counter stored in the Django cache.

    The window starts on an actor's first call; the key expires with the
    window, which resets the counter.
    """

    def __init__(
        self,
        scope: str,
        max_requests: int,
        window_seconds: int,
        cache: BaseCache | None = None,
    ) -> None:
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._cache = cache or default_cache

    def _key(self, actor_id: str) -> str:
        return f"ratelimit:{self.scope}:{actor_id}"

    def check_and_increment(self, actor_id: str) -> bool:
        key = self._key(actor_id)
        if self._cache.add(key, 1, timeout=self.window_seconds):
            count = 1
        else:
            try:
                count = self._cache.incr(key)
            except ValueError:
                # Key expired between add() and incr(): new window.
                self._cache.set(key, 1, timeout=self.window_seconds)
                count = 1

        if count > self.max_requests:
            logger.warning(
                "ratelimit.exceeded",
                scope=self.scope,
                actor_id=actor_id,
                count=count,
                limit=self.max_requests,
            )
            return False
        return True


class InMemoryRateLimiter:
    """Process-local fixed window: ``actor → (count, reset_at)``."""

    def __init__(
        self,
        scope: str,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[int, float]] = {}

    def check_and_increment(self, actor_id: str) -> bool:
        now = self._clock()
        with self._lock:
            count, reset_at = self._entries.get(actor_id, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            count += 1
            self._entries[actor_id] = (count, reset_at)

        if count > self.max_requests:
            logger.warning(
                "ratelimit.exceeded",
                scope=self.scope,
                actor_id=actor_id,
                count=count,
                limit=self.max_requests,
            )
            return False
        return True

    def cleanup(self) -> int:
        """Drop expired windows; returns how many entries were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, reset_at) in self._entries.items() if now >= reset_at]
            for key in expired:
                del self._entries[key]
        return len(expired)


def order_rate_limiter() -> CacheRateLimiter:
    """Order creation: ``ORDER_RATE_LIMIT`` per window per customer."""
    return CacheRateLimiter(
        "order", settings.ORDER_RATE_LIMIT, settings.RATE_LIMIT_WINDOW_SECONDS
    )


def default_rate_limiter() -> CacheRateLimiter:
    """Generic mutating calls (status transitions, receipts)."""
    return CacheRateLimiter(
        "default", settings.DEFAULT_RATE_LIMIT, settings.RATE_LIMIT_WINDOW_SECONDS
    )


def strict_rate_limiter() -> CacheRateLimiter:
    """Sensitive admin calls (rate updates, role changes)."""
    return CacheRateLimiter(
        "strict", settings.STRICT_RATE_LIMIT, settings.RATE_LIMIT_WINDOW_SECONDS
    )
