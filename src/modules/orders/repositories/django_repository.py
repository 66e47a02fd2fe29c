"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Concurrency
control on transitions uses ``select_for_update()``: the orchestrator
validates the transition against the same locked row it writes.

Domain events collected on the aggregate are published on the in-process
event bus only after the surrounding transaction commits.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet

from modules.core.authorization import Actor
from modules.orders.models import Order, OrderEvent
from modules.orders.repositories.interfaces import IOrderRepository
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or malformed IDs."""
        try:
            return Order.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        return Order.objects.filter(customer_id=customer_id, idempotency_key=key).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Supported filter keys: any ``Order`` lookup (``status``, ``customer_id``...)."""
        queryset = Order.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_customer(
        self, customer_id: str, status: Optional[str] = None
    ) -> List[Order]:
        filters: Dict[str, Any] = {"customer_id": customer_id}
        if status:
            filters["status"] = status
        return self.list(filters)

    def queryset_for(self, customer_id: Optional[str]) -> QuerySet[Order]:
        queryset = Order.objects.all()
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        return queryset

    def list_events(self, order_id: str) -> List[OrderEvent]:
        return list(OrderEvent.objects.filter(order_id=order_id).order_by("created_at", "id"))

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order, **save_kwargs: Any) -> Order:
        """Persist an order and schedule its domain events for after commit."""
        entity.save(**save_kwargs)

        events = entity.pull_domain_events()
        event_bus.publish_on_commit(events)

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    @transaction.atomic
    def add_event(
        self,
        order: Order,
        from_status: Optional[str],
        to_status: str,
        actor: Actor,
        note: str = "",
    ) -> OrderEvent:
        event = OrderEvent(
            order=order,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor.id,
            actor_name=actor.display_name,
            note=note,
        )
        event.save()
        logger.info(
            "order.event_appended",
            order_id=str(order.id),
            from_status=from_status,
            to_status=to_status,
        )
        return event
