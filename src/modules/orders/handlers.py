"""Post-commit log handlers for order events.

They give operators one structured line per committed change, next to
the append-only ``OrderEvent`` rows.
"""

from __future__ import annotations

import structlog

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderCreated, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info("order.event.created", **event.log_fields())


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        fields = event.log_fields()
        if event.new_status in (OrderStatus.REJECTED, OrderStatus.CANCELLED):
            logger.warning("order.event.status_changed", **fields)
        else:
            logger.info("order.event.status_changed", **fields)


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
