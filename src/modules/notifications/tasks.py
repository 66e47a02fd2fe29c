"""Asynchronous notification tasks."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.db import DatabaseError

from modules.notifications.exceptions import PushGatewayError
from modules.notifications.gateways import PushMessage, get_push_gateway
from modules.notifications.repositories.django_repository import (
    DeviceTokenDjangoRepository,
)
from modules.orders.constants import status_metadata

logger = structlog.get_logger(__name__)


def build_status_message(order_id: str, order_number: str, new_status: str) -> PushMessage:
    return PushMessage(
        title=f"Pedido #{order_number}",
        body=status_metadata(new_status).notification,
        link=f"{settings.APP_URL.rstrip('/')}/app/orders/{order_id}",
        tag=f"order-{order_id}",
        data={"order_id": order_id, "order_number": order_number, "status": new_status},
    )


@shared_task(name="notifications.send_order_status_push")
def send_order_status_push(
    order_id: str, order_number: str, customer_id: str, new_status: str
) -> dict:
    """Push the new status to every device of the customer.

    Tokens the gateway reports as invalid are deleted.  Delivery failures
    are logged; the task never raises.
    """
    log = logger.bind(order_id=order_id, customer_id=customer_id, status=new_status)
    repository = DeviceTokenDjangoRepository()

    try:
        tokens = [device.token for device in repository.list_for_customer(customer_id)]
    except DatabaseError:
        log.exception("notification.tokens_unavailable")
        return {"sent": 0, "failed": 0, "removed": 0}

    if not tokens:
        log.info("notification.no_tokens")
        return {"sent": 0, "failed": 0, "removed": 0}

    message = build_status_message(order_id, order_number, new_status)
    try:
        result = get_push_gateway().send(tokens, message)
    except PushGatewayError as exc:
        log.error("notification.push_failed", error=str(exc), tokens=len(tokens))
        return {"sent": 0, "failed": len(tokens), "removed": 0}

    removed = 0
    if result.invalid_tokens:
        try:
            removed = repository.delete_tokens(result.invalid_tokens)
        except DatabaseError:
            log.exception("notification.token_cleanup_failed")

    log.info(
        "notification.sent", sent=result.sent, failed=result.failed, removed=removed
    )
    return {"sent": result.sent, "failed": result.failed, "removed": removed}
