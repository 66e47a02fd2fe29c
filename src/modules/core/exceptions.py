"""Service-layer error taxonomy.

Every error a use case can raise belongs to exactly one *kind*.  Module
exceptions (``OrderNotFound``, ``RateNotConfigured``, ...) subclass the
kind they belong to, so views and the REST exception handler only need
to know the kind to pick a status code.

All of them are raised **before** any mutation is persisted, except
``InternalError``, which wraps storage failures after a rollback.
"""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "internal"
    http_status = 500
    default_message = "Internal error."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    kind = "unauthenticated"
    http_status = 401
    default_message = "Must be authenticated."


class PermissionDeniedError(ServiceError):
    kind = "permission-denied"
    http_status = 403
    default_message = "You do not have permission to perform this action."


class InvalidArgument(ServiceError):
    """Input rejected by validation; ``field`` names the offending input."""

    kind = "invalid-argument"
    http_status = 400
    default_message = "Invalid argument."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NotFound(ServiceError):
    kind = "not-found"
    http_status = 404
    default_message = "Not found."


class FailedPrecondition(ServiceError):
    kind = "failed-precondition"
    http_status = 409
    default_message = "Operation not allowed in the current state."


class ResourceExhausted(ServiceError):
    kind = "resource-exhausted"
    http_status = 429
    default_message = "Too many requests. Please wait."


class InternalError(ServiceError):
    kind = "internal"
    http_status = 500
    default_message = "Internal error."
