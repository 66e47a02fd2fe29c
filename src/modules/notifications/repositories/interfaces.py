"""Device token repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List

if TYPE_CHECKING:
    from modules.notifications.models import DeviceToken


class IDeviceTokenRepository(ABC):
    @abstractmethod
    def register(self, customer_id: str, token: str, user_agent: str) -> DeviceToken:
        """Create the token or move it to ``customer_id``."""

    @abstractmethod
    def remove(self, customer_id: str, token: str) -> bool:
        """Delete the customer's token; ``False`` when it was not theirs."""

    @abstractmethod
    def list_for_customer(self, customer_id: str) -> List[DeviceToken]: ...

    @abstractmethod
    def delete_tokens(self, tokens: Iterable[str]) -> int:
        """Drop tokens reported invalid by the push service."""
