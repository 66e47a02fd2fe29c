"""Audit logger for admin actions and denied access attempts.

Writes ``AuditLog`` / ``SecurityAlert`` rows and mirrors each entry to
structlog.  A failure to persist an audit row is logged and swallowed:
auditing must never break the operation being audited.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from django.db import DatabaseError, transaction

from modules.core.models import AuditLog, AuditResult, SecurityAlert

logger = structlog.get_logger(__name__)

ANONYMOUS_ACTOR = "anonymous"


class AuditLogger:
    """Persists audit entries for critical operations."""

    def log_success(
        self,
        actor_id: str,
        action: str,
        resource: str,
        resource_id: str = "",
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        return self._write(
            actor_id=actor_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            changes=changes or {},
            result=AuditResult.SUCCESS,
        )

    def log_failure(
        self,
        actor_id: str,
        action: str,
        resource: str,
        error_message: str,
        resource_id: str = "",
    ) -> Optional[AuditLog]:
        return self._write(
            actor_id=actor_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            result=AuditResult.FAILURE,
            error_message=error_message,
        )

    def log_security_alert(
        self, actor_id: Optional[str], attempted_action: str, details: str
    ) -> Optional[SecurityAlert]:
        """Record a denied attempt.  ``actor_id=None`` means anonymous."""
        actor = actor_id or ANONYMOUS_ACTOR
        logger.error(
            "security.alert",
            actor_id=actor,
            attempted_action=attempted_action,
            details=details,
        )
        try:
            with transaction.atomic():
                return SecurityAlert.objects.create(
                    actor_id=actor,
                    attempted_action=attempted_action,
                    details=details,
                )
        except DatabaseError:
            logger.exception(
                "security.alert_write_failed",
                actor_id=actor,
                attempted_action=attempted_action,
            )
            return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write(self, **fields: Any) -> Optional[AuditLog]:
        try:
            with transaction.atomic():
                entry = AuditLog.objects.create(**fields)
        except DatabaseError:
            logger.exception(
                "audit.write_failed",
                action=fields.get("action"),
                actor_id=fields.get("actor_id"),
            )
            return None
        logger.info(
            "audit.logged",
            action=entry.action,
            actor_id=entry.actor_id,
            result=entry.result,
            resource_id=entry.resource_id,
        )
        return entry


audit_logger = AuditLogger()
