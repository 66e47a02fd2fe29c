"""Request correlation for logs and error responses."""

import re
import time
import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CORRELATION_ID_LENGTH = 64
_SAFE_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._:-]+$")

logger = structlog.get_logger(__name__)


def get_correlation_id() -> str:
    return correlation_id_var.get()


def _accept_or_generate(candidate: str) -> str:
    if (
        candidate
        and len(candidate) <= MAX_CORRELATION_ID_LENGTH
        and _SAFE_CORRELATION_ID.match(candidate)
    ):
        return candidate
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Tags every log line of a request with one correlation id.

    A client-supplied ``X-Request-ID`` is reused when it is short and made
    of safe characters; otherwise a UUID4 is generated.  The id is echoed
    back in the response header, including on error responses.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = _accept_or_generate(request.META.get("HTTP_X_REQUEST_ID", ""))
        correlation_id_var.set(cid)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        started = time.monotonic()
        logger.info("request_started", method=request.method, path=request.path)
        response = self.get_response(request)
        logger.info(
            "request_finished",
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )

        response[REQUEST_ID_HEADER] = cid
        return response
