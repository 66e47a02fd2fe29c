"""Exchange rate domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import FailedPrecondition


class RateNotConfigured(FailedPrecondition):
    """No exchange rate has been configured yet."""

    default_message = "No exchange rate configured."
