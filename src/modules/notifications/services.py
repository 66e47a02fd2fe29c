"""Device token registration (Use Cases)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

import structlog

from modules.core.authorization import Actor, AuthorizationGate, authorization_gate
from modules.core.validation import parse_dto
from modules.notifications.dtos import RegisterDeviceTokenDTO, UnregisterDeviceTokenDTO
from modules.notifications.models import DeviceToken

if TYPE_CHECKING:
    from modules.notifications.repositories.interfaces import IDeviceTokenRepository

logger = structlog.get_logger(__name__)


class DeviceTokenService:
    def __init__(
        self,
        repository: IDeviceTokenRepository,
        gate: Optional[AuthorizationGate] = None,
    ) -> None:
        self._repo = repository
        self._gate = gate or authorization_gate

    def register(
        self,
        actor: Optional[Actor],
        dto: Union[RegisterDeviceTokenDTO, Mapping[str, Any]],
    ) -> DeviceToken:
        actor = self._gate.require_authenticated(actor, "registerDeviceToken")
        dto = parse_dto(RegisterDeviceTokenDTO, dto)
        return self._repo.register(actor.id, dto.token, dto.user_agent)

    def unregister(
        self,
        actor: Optional[Actor],
        dto: Union[UnregisterDeviceTokenDTO, Mapping[str, Any]],
    ) -> bool:
        """Idempotent; only the caller's own token is removed."""
        actor = self._gate.require_authenticated(actor, "unregisterDeviceToken")
        dto = parse_dto(UnregisterDeviceTokenDTO, dto)
        removed = self._repo.remove(actor.id, dto.token)
        logger.info("device_token.unregistered", customer_id=actor.id, removed=removed)
        return removed
