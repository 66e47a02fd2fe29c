"""Singleton exchange rate.

One row in the whole system (primary key ``current``).  Orders copy
``clp_to_ves`` into their own ``rate_snapshot`` at creation time, so
replacing the rate never touches existing orders.
"""

from __future__ import annotations

from django.db import models

RATE_MAX_DIGITS = 10
RATE_DECIMAL_PLACES = 4


class ExchangeRate(models.Model):
    SINGLETON_ID = "current"

    id = models.CharField(
        primary_key=True, max_length=16, default=SINGLETON_ID, editable=False
    )
    clp_to_ves = models.DecimalField(
        max_digits=RATE_MAX_DIGITS, decimal_places=RATE_DECIMAL_PLACES
    )
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.CharField(max_length=128)
    updated_by_name = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "exchange_rates"

    def __str__(self) -> str:
        return f"1 CLP = {self.clp_to_ves} VES"
