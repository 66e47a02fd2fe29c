"""Order repository interface.

Extends ``IRepository[Order]`` with the methods the Order aggregate
needs: locked reads for the orchestrator, event appends, idempotency-key
look-up and per-customer listing.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.core.authorization import Actor
    from modules.orders.models import Order, OrderEvent


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes its append-only ``OrderEvent`` log.
    Status and event must be written in the same transaction.
    """

    @abstractmethod
    def save(self, entity: Order, **save_kwargs: Any) -> Order:
        """Persist the order; ``save_kwargs`` are passed to ``Order.save``."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        """Retrieve a customer's order by its idempotency key."""

    @abstractmethod
    def list_for_customer(
        self, customer_id: str, status: Optional[str] = None
    ) -> List[Order]:
        """Orders owned by one customer, newest first."""

    @abstractmethod
    def queryset_for(self, customer_id: Optional[str]) -> Any:
        """Lazy QuerySet of orders; ``None`` means all customers."""

    @abstractmethod
    def add_event(
        self,
        order: Order,
        from_status: Optional[str],
        to_status: str,
        actor: Actor,
        note: str = "",
    ) -> OrderEvent:
        """Append one event to the order's log."""

    @abstractmethod
    def list_events(self, order_id: str) -> List[OrderEvent]:
        """Events of an order, oldest first."""
