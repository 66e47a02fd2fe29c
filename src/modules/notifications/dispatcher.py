"""Bridges ``OrderStatusChanged`` events to the push notification task."""

from __future__ import annotations

from typing import Any, Optional

import structlog
from celery.exceptions import CeleryError
from kombu.exceptions import KombuError

from modules.notifications.tasks import send_order_status_push
from modules.orders.events import OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class NotificationDispatcher(IEventHandler[OrderStatusChanged]):
    """Enqueues one push task per committed status change.

    A broker outage never reaches the order flow: the failure is logged
    and dropped.
    """

    def __init__(self, task: Optional[Any] = None) -> None:
        self._task = task or send_order_status_push

    def handle(self, event: OrderStatusChanged) -> None:
        self.order_status_changed(event)

    def order_status_changed(self, event: OrderStatusChanged) -> None:
        try:
            self._task.delay(
                str(event.aggregate_id),
                event.order_number,
                event.customer_id,
                event.new_status,
            )
        except (CeleryError, KombuError, OSError):
            logger.exception(
                "notification.dispatch_failed",
                order_id=str(event.aggregate_id),
                new_status=event.new_status,
            )


notification_dispatcher = NotificationDispatcher()
