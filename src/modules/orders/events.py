"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    customer_id: str = ""
    order_number: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised after an order status transition is committed."""

    customer_id: str = ""
    order_number: str = ""
    old_status: Optional[str] = None
    new_status: str = ""
