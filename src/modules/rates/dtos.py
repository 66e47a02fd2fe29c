"""Exchange rate DTOs."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from pydantic import BaseModel, ConfigDict, field_validator

from modules.rates.models import RATE_DECIMAL_PLACES

_QUANTUM = Decimal(1).scaleb(-RATE_DECIMAL_PLACES)


class UpdateRateDTO(BaseModel):
    """New CLP→VES multiplier.

    Rejects non-positive values, then anything outside
    ``[MIN_RATE, MAX_RATE]``; accepted values are rounded to the stored
    precision.
    """

    model_config = ConfigDict(frozen=True)

    clp_to_ves: Decimal

    @field_validator("clp_to_ves")
    @classmethod
    def within_range(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v <= 0:
            raise ValueError("Invalid rate value.")
        if v < settings.MIN_RATE or v > settings.MAX_RATE:
            raise ValueError(
                f"Rate value out of reasonable range "
                f"({settings.MIN_RATE} to {settings.MAX_RATE})."
            )
        return v.quantize(_QUANTUM, rounding=ROUND_HALF_UP)
