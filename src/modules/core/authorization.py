"""Authorization gate for mutating use cases.

Two roles exist: ``customer`` and ``admin``.  The role is an attribute of
the caller's identity (resolved once per request into an ``Actor``), never
of the request payload.

Check order is fixed:
1. No actor → ``Unauthenticated``.
2. Actor lacks the required role / ownership → ``PermissionDeniedError``.

Every denial is written to the security-alert log before the exception
is raised.  Callers invoke the gate *outside* their ``transaction.atomic``
block so the alert survives the rollback of the denied operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.db import models

from modules.core.audit import AuditLogger, audit_logger
from modules.core.exceptions import PermissionDeniedError, Unauthenticated


class Role(models.TextChoices):
    CUSTOMER = "customer", "Cliente"
    ADMIN = "admin", "Administrador"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of a use case."""

    id: str
    role: str = Role.CUSTOMER
    display_name: str = ""
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER


class AuthorizationGate:
    """Role and ownership checks with security-alert logging."""

    def __init__(self, auditor: Optional[AuditLogger] = None) -> None:
        self._audit = auditor or audit_logger

    def require_authenticated(self, actor: Optional[Actor], action: str) -> Actor:
        if actor is None:
            self._audit.log_security_alert(None, action, "Unauthenticated attempt")
            raise Unauthenticated("Must be authenticated.")
        return actor

    def require_admin(self, actor: Optional[Actor], action: str) -> Actor:
        actor = self.require_authenticated(actor, action)
        if not actor.is_admin:
            self._audit.log_security_alert(
                actor.id, action, f"Non-admin user attempted {action}"
            )
            raise PermissionDeniedError(f"Only admins can perform {action}.")
        return actor

    def require_customer(self, actor: Optional[Actor], action: str) -> Actor:
        actor = self.require_authenticated(actor, action)
        if not actor.is_customer:
            self._audit.log_security_alert(
                actor.id, action, f"Role {actor.role} attempted customer-only {action}"
            )
            raise PermissionDeniedError(f"Only customers can perform {action}.")
        return actor

    def require_owner(
        self, actor: Optional[Actor], action: str, owner_id: str
    ) -> Actor:
        """Customer role AND ``actor.id == owner_id``."""
        actor = self.require_customer(actor, action)
        if actor.id != owner_id:
            self._audit.log_security_alert(
                actor.id, action, f"Customer attempted {action} on a resource of another customer"
            )
            raise PermissionDeniedError(
                f"Only the owner of this resource can perform {action}."
            )
        return actor

    def deny(self, actor: Actor, action: str, details: str) -> None:
        """Record and raise a denial decided by the caller's own rule."""
        self._audit.log_security_alert(actor.id, action, details)
        raise PermissionDeniedError(details)


authorization_gate = AuthorizationGate()
