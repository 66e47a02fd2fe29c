"""Order and OrderEvent models.

Business rules implemented:
- Financial snapshot (``amount_source``, ``rate_snapshot``,
  ``amount_target``), owner and beneficiary are written once, at creation.
- ``status`` and the receipt/payout fields change only through the
  lifecycle orchestrator (``modules.orders.lifecycle``); any other write
  raises ``ImmutableFieldError``, including ``QuerySet.update``.
- ``OrderEvent`` rows are append-only: never updated, never deleted.
- Order number auto-generated as human-readable identifier.
- Idempotency via ``(customer_id, idempotency_key)`` unique constraint.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any, Iterable, List

import structlog
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.accounts.models import BENEFICIARY_FIELDS, BeneficiaryFields
from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    OrderStatus,
    StatusMetadata,
    allowed_transitions,
    is_transition_allowed,
    status_metadata,
)
from modules.orders.exceptions import ImmutableFieldError, OrderNumberGenerationFailed
from modules.rates.models import RATE_DECIMAL_PLACES, RATE_MAX_DIGITS
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

# Never change after creation.
FROZEN_FIELDS: frozenset[str] = frozenset(
    {
        "order_number",
        "customer_id",
        "amount_source",
        "rate_snapshot",
        "amount_target",
        *BENEFICIARY_FIELDS,
    }
)

# Change only together with an event, through the orchestrator.
LIFECYCLE_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "completed_at",
        "source_receipt_ref",
        "destination_receipt_ref",
        "transfer_reference",
        "transferred_at",
    }
)

PROTECTED_FIELDS = FROZEN_FIELDS | LIFECYCLE_FIELDS

# Passed by the orchestrator to ``Order.save``; nothing else holds it.
_LIFECYCLE_TOKEN = object()


class OrderQuerySet(models.QuerySet):
    def update(self, **kwargs: Any) -> int:
        blocked = PROTECTED_FIELDS.intersection(kwargs)
        if blocked:
            raise ImmutableFieldError(
                f"Bulk update of protected order fields: {sorted(blocked)}"
            )
        return super().update(**kwargs)

    def bulk_update(self, objs: Iterable[Any], fields: Iterable[str], **kwargs: Any) -> int:
        blocked = PROTECTED_FIELDS.intersection(fields)
        if blocked:
            raise ImmutableFieldError(
                f"Bulk update of protected order fields: {sorted(blocked)}"
            )
        return super().bulk_update(objs, fields, **kwargs)


class Order(DomainEventMixin, BeneficiaryFields, BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDDHHMMSS-XXXXXX``).  The UUIDv7 ``id`` is
    used for all internal references and API lookups.
    """

    order_number = models.CharField(max_length=32, unique=True, editable=False)
    customer_id = models.CharField(max_length=128, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_email = models.EmailField(max_length=254, blank=True, default="")

    amount_source = models.PositiveBigIntegerField(validators=[MinValueValidator(1)])
    rate_snapshot = models.DecimalField(
        max_digits=RATE_MAX_DIGITS, decimal_places=RATE_DECIMAL_PLACES
    )
    amount_target = models.DecimalField(
        max_digits=24, decimal_places=RATE_DECIMAL_PLACES
    )

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.CREATED,
    )
    source_receipt_ref = models.CharField(max_length=500, blank=True, default="")
    destination_receipt_ref = models.CharField(max_length=500, blank=True, default="")
    transfer_reference = models.CharField(max_length=120, blank=True, default="")
    transferred_at = models.DateTimeField(null=True, blank=True, default=None)
    completed_at = models.DateTimeField(null=True, blank=True, default=None)

    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        db_table = "orders"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["customer_id", "-created_at"], name="orders_customer_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["customer_id", "idempotency_key"],
                name="orders_customer_idempotency_uniq",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def allowed_next_statuses(self) -> frozenset[str]:
        return allowed_transitions(self.status)

    def can_transition_to(self, new_status: str) -> bool:
        return is_transition_allowed(self.status, new_status)

    @property
    def metadata(self) -> StatusMetadata:
        return status_metadata(self.status)

    # ------------------------------------------------------------------
    # Financial snapshot
    # ------------------------------------------------------------------

    @staticmethod
    def compute_amount_target(amount_source: int, rate: Decimal) -> Decimal:
        return Decimal(amount_source) * rate

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDDHHMMSS-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d%H%M%S}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._remember_persisted_values()
        return instance

    def refresh_from_db(self, *args: Any, **kwargs: Any) -> None:
        super().refresh_from_db(*args, **kwargs)
        self._remember_persisted_values()

    def _remember_persisted_values(self) -> None:
        deferred = self.get_deferred_fields()
        self._persisted = {
            name: getattr(self, name)
            for name in PROTECTED_FIELDS
            if name not in deferred
        }

    def _changed_protected_fields(self) -> set[str]:
        persisted = getattr(self, "_persisted", {})
        return {
            name
            for name, value in persisted.items()
            if getattr(self, name) != value
        }

    def save(self, *args: Any, lifecycle_token: object = None, **kwargs: Any) -> None:
        if self._state.adding:
            self.assign_order_number()
        else:
            changed = self._changed_protected_fields()
            frozen = changed & FROZEN_FIELDS
            if frozen:
                logger.error(
                    "order.immutable_write_blocked",
                    order_id=str(self.id),
                    fields=sorted(frozen),
                )
                raise ImmutableFieldError(
                    f"Order fields are immutable after creation: {sorted(frozen)}"
                )
            if changed and lifecycle_token is not _LIFECYCLE_TOKEN:
                logger.error(
                    "order.status_bypass_blocked",
                    order_id=str(self.id),
                    fields=sorted(changed),
                )
                raise ImmutableFieldError(
                    f"Use the order lifecycle to change: {sorted(changed)}"
                )
            if lifecycle_token is not _LIFECYCLE_TOKEN:
                # A stale instance must not write back an old status.
                kwargs["update_fields"] = self._unprotected_fields(
                    kwargs.get("update_fields")
                )
        super().save(*args, **kwargs)
        self._remember_persisted_values()

    def _unprotected_fields(self, requested: Iterable[str] | None) -> list[str]:
        names = requested or [
            f.name for f in self._meta.concrete_fields if not f.primary_key
        ]
        return [name for name in names if name not in PROTECTED_FIELDS]

    def assign_order_number(self) -> str:
        """Pick a unique order number once; later calls keep it."""
        if not self.order_number:
            self.order_number = self._unique_order_number()
        return self.order_number

    def _unique_order_number(self) -> str:
        for _attempt in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = self.generate_order_number()
            if not Order.objects.filter(order_number=candidate).exists():
                return candidate
        raise OrderNumberGenerationFailed(
            f"Failed to generate unique order_number after "
            f"{ORDER_NUMBER_MAX_RETRIES} attempts"
        )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderEventQuerySet(models.QuerySet):
    def update(self, **kwargs: Any) -> int:
        raise ImmutableFieldError("Order events are append-only.")

    def delete(self) -> Any:
        raise ImmutableFieldError("Order events are append-only.")


class OrderEvent(BaseModel):
    """Append-only audit trail of order status transitions.

    ``from_status`` is ``None`` only for the creation event.  Events are
    read oldest first; UUIDv7 ids break ``created_at`` ties in insertion
    order.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="events",
    )
    from_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    to_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    actor_id = models.CharField(max_length=128)
    actor_name = models.CharField(max_length=255, blank=True, default="")
    note = models.TextField(blank=True, default="")

    objects = OrderEventQuerySet.as_manager()

    class Meta:
        db_table = "order_events"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="order_events_order_idx"),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ImmutableFieldError("Order events are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any) -> Any:
        raise ImmutableFieldError("Order events are append-only.")

    def __str__(self) -> str:
        return f"{self.order_id}: {self.from_status} -> {self.to_status}"


def verify_event_chain(order: Order) -> List[str]:
    """Check an order against its event log; returns the violations found.

    - ``amount_target == amount_source * rate_snapshot``
    - the first event is ``None -> created``
    - each event starts where the previous one ended, along a legal edge
    - the latest event ends in the order's current status
    """
    violations: List[str] = []
    expected = Order.compute_amount_target(order.amount_source, order.rate_snapshot)
    if Decimal(order.amount_target) != expected:
        violations.append(
            f"amount_target {order.amount_target} != {order.amount_source} x {order.rate_snapshot}"
        )

    events = list(OrderEvent.objects.filter(order_id=order.pk).order_by("created_at", "id"))
    if not events:
        violations.append("order has no events")
        return violations

    first = events[0]
    if first.from_status is not None or first.to_status != OrderStatus.CREATED:
        violations.append(
            f"first event is {first.from_status} -> {first.to_status}, expected None -> created"
        )

    for index, (previous, current) in enumerate(zip(events, events[1:]), start=1):
        if current.from_status != previous.to_status:
            violations.append(
                f"event {index} starts at {current.from_status}, previous ended at {previous.to_status}"
            )
        if not is_transition_allowed(current.from_status, current.to_status):
            violations.append(
                f"event {index} is an illegal transition {current.from_status} -> {current.to_status}"
            )

    if events[-1].to_status != order.status:
        violations.append(
            f"order status {order.status} != latest event {events[-1].to_status}"
        )
    return violations
