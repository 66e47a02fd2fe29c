"""Liveness/readiness endpoint.

``/health`` reports the database and the cache (which also holds the
rate-limit counters).  Either one down makes the service unhealthy (503).
Whether an exchange rate is configured is reported but never fails the
check: the API is up, it just cannot take orders yet.
"""

import time
from typing import Any, Callable, Dict

import structlog
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.rates.models import ExchangeRate

logger = structlog.get_logger(__name__)

HEALTH_CACHE_KEY = "_health_check"


def _check_database() -> None:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _check_cache() -> None:
    cache.set(HEALTH_CACHE_KEY, "ok", 10)
    if cache.get(HEALTH_CACHE_KEY) != "ok":
        raise ConnectionError("Cache read failed")


def _timed(name: str, check: Callable[[], None]) -> Dict[str, Any]:
    started = time.monotonic()
    try:
        check()
    except Exception as exc:  # any backend failure means "down"
        logger.error("health_check.service_down", service=name, error=str(exc))
        return {"status": "down"}
    return {
        "status": "up",
        "response_time_ms": round((time.monotonic() - started) * 1000, 2),
    }


def _rate_configured() -> bool:
    try:
        return ExchangeRate.objects.exists()
    except DatabaseError:
        return False


def health_check(request: HttpRequest) -> JsonResponse:
    services = {
        "database": _timed("database", _check_database),
        "cache": _timed("cache", _check_cache),
    }
    healthy = all(s["status"] == "up" for s in services.values())
    status = "healthy" if healthy else "unhealthy"
    logger.info("health_check.completed", status=status)

    return JsonResponse(
        {
            "status": status,
            "timestamp": timezone.now().isoformat(),
            "services": services,
            "exchange_rate_configured": _rate_configured(),
        },
        status=200 if healthy else 503,
    )
