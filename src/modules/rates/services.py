"""Exchange rate service layer (Use Cases).

Business rules enforced:
- Only admins update the rate, under the strict rate limiter.
- The rate is positive and within ``[MIN_RATE, MAX_RATE]``.
- Concurrent updates are last-write-wins; ``updated_by`` / ``updated_at``
  record who wrote last.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

import structlog
from django.db import DatabaseError, transaction

from modules.core.audit import AuditLogger, audit_logger
from modules.core.authorization import Actor, AuthorizationGate, authorization_gate
from modules.core.exceptions import InternalError, ResourceExhausted
from modules.core.ratelimit import strict_rate_limiter
from modules.core.validation import parse_dto
from modules.rates.dtos import UpdateRateDTO
from modules.rates.exceptions import RateNotConfigured

if TYPE_CHECKING:
    from modules.core.ratelimit import IRateLimiter
    from modules.rates.models import ExchangeRate
    from modules.rates.repositories.interfaces import IExchangeRateRepository

logger = structlog.get_logger(__name__)


class RateService:
    """Application service for the singleton exchange rate."""

    def __init__(
        self,
        repository: IExchangeRateRepository,
        rate_limiter: Optional[IRateLimiter] = None,
        gate: Optional[AuthorizationGate] = None,
        auditor: Optional[AuditLogger] = None,
    ) -> None:
        self._repo = repository
        self._limiter = rate_limiter or strict_rate_limiter()
        self._gate = gate or authorization_gate
        self._audit = auditor or audit_logger

    def update_rate(
        self, actor: Optional[Actor], dto: Union[UpdateRateDTO, Mapping[str, Any]]
    ) -> ExchangeRate:
        """Replace the current rate.

        Raises:
            Unauthenticated / PermissionDeniedError: caller is not an admin.
            InvalidArgument: value missing, non-positive or out of range.
            ResourceExhausted: strict limiter exceeded.
            InternalError: the rate could not be stored.
        """
        actor = self._gate.require_admin(actor, "updateRate")
        dto = parse_dto(UpdateRateDTO, dto)
        log = logger.bind(actor_id=actor.id, clp_to_ves=str(dto.clp_to_ves))

        if not self._limiter.check_and_increment(actor.id):
            self._audit.log_failure(actor.id, "updateRate", "rate", "Rate limit exceeded")
            raise ResourceExhausted()

        previous = self._repo.get_current()
        try:
            with transaction.atomic():
                rate = self._repo.replace(
                    dto.clp_to_ves, actor.id, actor.display_name
                )
        except DatabaseError as exc:
            log.exception("rate.update_failed")
            self._audit.log_failure(actor.id, "updateRate", "rate", str(exc))
            raise InternalError("Failed to update rate.") from exc

        self._audit.log_success(
            actor.id,
            "updateRate",
            "rate",
            rate.pk,
            changes={
                "from": str(previous.clp_to_ves) if previous else None,
                "to": str(rate.clp_to_ves),
            },
        )
        log.info("rate.updated")
        return rate

    def get_current_rate(self) -> ExchangeRate:
        """Raises ``RateNotConfigured`` when no rate was ever set."""
        rate = self._repo.get_current()
        if rate is None:
            raise RateNotConfigured()
        return rate
