"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.  Each one
subclasses a service error kind; the REST exception handler renders it.
"""

from __future__ import annotations

from typing import Optional

from modules.core.exceptions import FailedPrecondition, InternalError, NotFound


class OrderNotFound(NotFound):
    """The requested order does not exist or is not visible to the caller."""

    default_message = "Order not found."


class InvalidOrderStatus(FailedPrecondition):
    """An illegal status transition was attempted."""

    def __init__(self, from_status: Optional[str], to_status: Optional[str]) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot transition from {from_status} to {to_status}.")


class ReceiptAlreadyAttached(FailedPrecondition):
    """The destination (VES) receipt of the order was already set."""


class PayoutAlreadyConfirmed(FailedPrecondition):
    """The transfer reference of the order was already set."""


class DestinationReceiptNotAllowed(FailedPrecondition):
    """The order is not in a status that accepts the destination receipt."""


class ImmutableFieldError(InternalError):
    """A protected order field was written outside the lifecycle orchestrator."""


class OrderNumberGenerationFailed(InternalError):
    """No unique order number could be generated."""
