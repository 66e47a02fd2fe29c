"""Django ORM implementation of ``IDeviceTokenRepository``."""

from __future__ import annotations

from typing import Iterable, List

import structlog

from modules.notifications.models import DeviceToken
from modules.notifications.repositories.interfaces import IDeviceTokenRepository

logger = structlog.get_logger(__name__)


class DeviceTokenDjangoRepository(IDeviceTokenRepository):
    def register(self, customer_id: str, token: str, user_agent: str) -> DeviceToken:
        device, created = DeviceToken.objects.update_or_create(
            token=token,
            defaults={"customer_id": customer_id, "user_agent": user_agent},
        )
        logger.info(
            "device_token.registered", customer_id=customer_id, created=created
        )
        return device

    def remove(self, customer_id: str, token: str) -> bool:
        deleted, _ = DeviceToken.objects.filter(
            customer_id=customer_id, token=token
        ).delete()
        return deleted > 0

    def list_for_customer(self, customer_id: str) -> List[DeviceToken]:
        return list(DeviceToken.objects.filter(customer_id=customer_id))

    def delete_tokens(self, tokens: Iterable[str]) -> int:
        tokens = list(tokens)
        if not tokens:
            return 0
        deleted, _ = DeviceToken.objects.filter(token__in=tokens).delete()
        return deleted
