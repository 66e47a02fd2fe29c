"""Django ORM implementation of ``IExchangeRateRepository``."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

import structlog

from modules.rates.models import ExchangeRate
from modules.rates.repositories.interfaces import IExchangeRateRepository

logger = structlog.get_logger(__name__)


class ExchangeRateDjangoRepository(IExchangeRateRepository):
    def get_current(self) -> Optional[ExchangeRate]:
        return ExchangeRate.objects.filter(pk=ExchangeRate.SINGLETON_ID).first()

    def replace(
        self, clp_to_ves: Decimal, updated_by: str, updated_by_name: str
    ) -> ExchangeRate:
        rate, _ = ExchangeRate.objects.update_or_create(
            pk=ExchangeRate.SINGLETON_ID,
            defaults={
                "clp_to_ves": clp_to_ves,
                "updated_by": updated_by,
                "updated_by_name": updated_by_name,
            },
        )
        logger.info("rate.replaced", clp_to_ves=str(clp_to_ves), updated_by=updated_by)
        return rate
