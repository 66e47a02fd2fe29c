"""Standardized REST error responses.

Every error leaves the API in the same envelope::

    {"type": "<kind>", "errors": [{"code": "...", "detail": "...", "attr": null}]}

``type`` is one of the service error kinds (``unauthenticated``,
``permission-denied``, ``invalid-argument``, ``not-found``,
``failed-precondition``, ``resource-exhausted``, ``internal``).
Unexpected exceptions are logged with full context and answered with a
generic ``internal`` error; no internal detail leaks to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.permissions import SAFE_METHODS
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from modules.core.audit import audit_logger
from modules.core.exceptions import InvalidArgument, ServiceError

logger = structlog.get_logger(__name__)

_DRF_KIND_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "invalid-argument",
    status.HTTP_401_UNAUTHORIZED: "unauthenticated",
    status.HTTP_403_FORBIDDEN: "permission-denied",
    status.HTTP_404_NOT_FOUND: "not-found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "invalid-argument",
    status.HTTP_409_CONFLICT: "failed-precondition",
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: "invalid-argument",
    status.HTTP_429_TOO_MANY_REQUESTS: "resource-exhausted",
}


def error_body(
    kind: str, detail: str, attr: Optional[str] = None, code: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "type": kind,
        "errors": [{"code": code or kind, "detail": detail, "attr": attr}],
    }


def _flatten_validation_errors(detail: Any, prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    """Turn DRF's nested ``ValidationError.detail`` into a flat list."""
    errors: List[Dict[str, Any]] = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            attr = key if prefix is None else f"{prefix}.{key}"
            if key == "non_field_errors":
                attr = prefix
            errors.extend(_flatten_validation_errors(value, attr))
    elif isinstance(detail, list):
        for item in detail:
            errors.extend(_flatten_validation_errors(item, prefix))
    else:
        errors.append(
            {
                "code": getattr(detail, "code", "invalid"),
                "detail": str(detail),
                "attr": prefix,
            }
        )
    return errors


def _alert_failed_write(
    exc: exceptions.AuthenticationFailed, context: Dict[str, Any], view_name: Optional[str]
) -> None:
    """Unsafe request with a rejected credential (forged, expired, malformed).

    Missing credentials raise ``NotAuthenticated`` and are alerted by the
    permission class instead.
    """
    request = context.get("request")
    if request is None or request.method in SAFE_METHODS:
        return
    action = getattr(context.get("view"), "action", None) or request.method.lower()
    audit_logger.log_security_alert(
        None, f"{view_name}.{action}", f"Authentication failed: {exc.default_code}"
    )


def standard_exception_handler(exc: Exception, context: Dict[str, Any]) -> Response:
    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else None

    if isinstance(exc, ServiceError):
        attr = exc.field if isinstance(exc, InvalidArgument) else None
        logger.info(
            "api.service_error",
            kind=exc.kind,
            detail=exc.message,
            view=view_name,
        )
        return Response(error_body(exc.kind, exc.message, attr), status=exc.http_status)

    if isinstance(exc, Http404):
        exc = exceptions.NotFound()

    if isinstance(exc, exceptions.AuthenticationFailed):
        _alert_failed_write(exc, context, view_name)

    response = drf_exception_handler(exc, context)
    if response is None:
        logger.exception("api.unhandled_error", view=view_name, error_type=type(exc).__name__)
        return Response(
            error_body("internal", "Internal error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    kind = _DRF_KIND_BY_STATUS.get(response.status_code, "internal")
    if isinstance(exc, exceptions.ValidationError):
        errors = _flatten_validation_errors(exc.detail)
    else:
        detail = getattr(exc, "detail", str(exc))
        errors = [
            {
                "code": getattr(detail, "code", kind),
                "detail": str(detail),
                "attr": None,
            }
        ]
    response.data = {"type": kind, "errors": errors}
    return response
