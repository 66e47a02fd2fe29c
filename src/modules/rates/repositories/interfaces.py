"""Exchange rate repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from modules.rates.models import ExchangeRate


class IExchangeRateRepository(ABC):
    """Access to the singleton rate record."""

    @abstractmethod
    def get_current(self) -> Optional[ExchangeRate]:
        """The current rate, or ``None`` when never configured."""

    @abstractmethod
    def replace(
        self, clp_to_ves: Decimal, updated_by: str, updated_by_name: str
    ) -> ExchangeRate:
        """Overwrite the singleton (last write wins)."""
