"""DRF permission classes."""

from __future__ import annotations

from rest_framework.permissions import SAFE_METHODS, BasePermission

from modules.core.audit import audit_logger


class AuthenticatedOrSecurityAlert(BasePermission):
    """``IsAuthenticated`` that also records anonymous write attempts.

    Read-only anonymous calls are rejected silently; unsafe methods leave
    a security alert before DRF answers 401.
    """

    def has_permission(self, request, view) -> bool:
        user = request.user
        if user is not None and user.is_authenticated:
            return True
        if request.method not in SAFE_METHODS:
            action = getattr(view, "action", None) or request.method.lower()
            audit_logger.log_security_alert(
                None,
                f"{view.__class__.__name__}.{action}",
                "Unauthenticated attempt",
            )
        return False
