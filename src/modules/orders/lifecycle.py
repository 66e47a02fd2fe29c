"""Order lifecycle orchestrator.

The only write path for an order's status and its event log.  Each call
is one ``transaction.atomic()`` unit:

1. Lock the order row (``SELECT ... FOR UPDATE``).
2. Validate the transition against that same locked read.
3. Run the caller's precondition on the locked row.
4. Write status + lifecycle fields and append exactly one ``OrderEvent``.

Any exception rolls back both writes.  ``OrderStatusChanged`` is
published on the event bus once the transaction commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog
from django.db import DatabaseError, transaction
from django.utils import timezone

from modules.core.exceptions import InternalError
from modules.orders.constants import OrderStatus, is_transition_allowed
from modules.orders.events import OrderStatusChanged
from modules.orders.exceptions import (
    ImmutableFieldError,
    InvalidOrderStatus,
    OrderNotFound,
)
from modules.orders.models import _LIFECYCLE_TOKEN, LIFECYCLE_FIELDS

if TYPE_CHECKING:
    from modules.core.authorization import Actor
    from modules.orders.models import Order, OrderEvent
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

Precondition = Callable[["Order"], None]

# Set by the orchestrator itself, never by callers.
_MANAGED_FIELDS = frozenset({"status", "completed_at"})


@dataclass(frozen=True)
class TransitionResult:
    order: Order
    from_status: str
    to_status: str
    event: OrderEvent


class OrderLifecycle:
    """Atomic status transitions over an injected ``IOrderRepository``."""

    def __init__(self, repository: IOrderRepository) -> None:
        self._repo = repository

    def transition(
        self,
        order_id: str,
        new_status: str,
        actor: Actor,
        note: str = "",
        precondition: Optional[Precondition] = None,
        **changes: Any,
    ) -> TransitionResult:
        """Move ``order_id`` to ``new_status`` and record the event.

        ``changes`` are extra lifecycle fields written in the same unit
        (e.g. ``source_receipt_ref``).

        Raises:
            OrderNotFound: the order does not exist.
            InvalidOrderStatus: ``new_status`` is not allowed from the
                current status; nothing is written.
            InternalError: storage failure; nothing is written.
        """
        self._check_changes(changes)
        log = logger.bind(order_id=str(order_id), new_status=new_status, actor_id=actor.id)

        try:
            with transaction.atomic():
                order = self._lock(order_id)
                old_status = order.status
                if not is_transition_allowed(old_status, new_status):
                    log.warning("order.invalid_transition", current_status=old_status)
                    raise InvalidOrderStatus(old_status, new_status)
                if precondition is not None:
                    precondition(order)

                order.status = new_status
                if new_status == OrderStatus.COMPLETED:
                    order.completed_at = timezone.now()
                for field, value in changes.items():
                    setattr(order, field, value)

                order.add_domain_event(
                    OrderStatusChanged(
                        aggregate_id=order.id,
                        customer_id=order.customer_id,
                        order_number=order.order_number,
                        old_status=old_status,
                        new_status=new_status,
                    )
                )
                self._repo.save(order, lifecycle_token=_LIFECYCLE_TOKEN)
                event = self._repo.add_event(order, old_status, new_status, actor, note)
        except DatabaseError as exc:
            log.exception("order.transition_storage_failed")
            raise InternalError("Failed to update order status.") from exc

        log.info("order.status_updated", old_status=old_status)
        return TransitionResult(order, old_status, new_status, event)

    def amend(
        self,
        order_id: str,
        actor: Actor,
        precondition: Optional[Precondition] = None,
        **changes: Any,
    ) -> Order:
        """Write lifecycle fields without a status change (no event)."""
        self._check_changes(changes)
        log = logger.bind(order_id=str(order_id), actor_id=actor.id, fields=sorted(changes))

        try:
            with transaction.atomic():
                order = self._lock(order_id)
                if precondition is not None:
                    precondition(order)
                for field, value in changes.items():
                    setattr(order, field, value)
                self._repo.save(order, lifecycle_token=_LIFECYCLE_TOKEN)
        except DatabaseError as exc:
            log.exception("order.amend_storage_failed")
            raise InternalError("Failed to update order.") from exc

        log.info("order.amended")
        return order

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lock(self, order_id: str) -> Order:
        order = self._repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound()
        return order

    @staticmethod
    def _check_changes(changes: dict[str, Any]) -> None:
        invalid = set(changes) - (LIFECYCLE_FIELDS - _MANAGED_FIELDS)
        if invalid:
            raise ImmutableFieldError(
                f"Not writable through the lifecycle: {sorted(invalid)}"
            )
