"""Order domain constants.

Defines status choices, the transition table of the order state machine
and the presentation metadata every layer reads for a status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.db import models


class OrderStatus(models.TextChoices):
    CREATED = "created", "Creado"
    RECEIPT_UPLOADED = "receipt_uploaded", "Comprobante CLP Subido"
    RECEIPT_VERIFIED = "receipt_verified", "CLP Verificado"
    PROCESSING = "processing", "Procesando"
    PAID_OUT = "paid_out", "VES Pagado"
    COMPLETED = "completed", "Completado"
    REJECTED = "rejected", "Rechazado"
    CANCELLED = "cancelled", "Cancelado"


VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.RECEIPT_UPLOADED, OrderStatus.CANCELLED}),
    OrderStatus.RECEIPT_UPLOADED: frozenset(
        {OrderStatus.RECEIPT_VERIFIED, OrderStatus.REJECTED, OrderStatus.CANCELLED}
    ),
    OrderStatus.RECEIPT_VERIFIED: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.REJECTED}
    ),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PAID_OUT, OrderStatus.CANCELLED}),
    OrderStatus.PAID_OUT: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    # Resubmission: the customer starts over with a new receipt.
    OrderStatus.REJECTED: frozenset({OrderStatus.CREATED}),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED}
)

# Only the owning customer drives this edge (receipt upload).
CUSTOMER_TRANSITION = (OrderStatus.CREATED, OrderStatus.RECEIPT_UPLOADED)

# Statuses in which the VES receipt may be attached.
DESTINATION_RECEIPT_STATUSES: frozenset[str] = frozenset(
    {OrderStatus.PROCESSING, OrderStatus.PAID_OUT}
)

ORDER_NUMBER_MAX_RETRIES = 5


def allowed_transitions(from_status: Optional[str]) -> frozenset[str]:
    """Statuses that may follow ``from_status`` (empty for unknown values)."""
    return VALID_TRANSITIONS.get(from_status, frozenset())


def is_transition_allowed(from_status: Optional[str], to_status: Optional[str]) -> bool:
    return to_status in allowed_transitions(from_status)


@dataclass(frozen=True)
class StatusMetadata:
    label: str
    severity: str
    icon: str
    notification: str


STATUS_METADATA: dict[str, StatusMetadata] = {
    OrderStatus.CREATED: StatusMetadata(
        OrderStatus.CREATED.label, "secondary", "📝", "Tu pedido ha sido creado"
    ),
    OrderStatus.RECEIPT_UPLOADED: StatusMetadata(
        OrderStatus.RECEIPT_UPLOADED.label, "info", "📄", "Comprobante CLP recibido"
    ),
    OrderStatus.RECEIPT_VERIFIED: StatusMetadata(
        OrderStatus.RECEIPT_VERIFIED.label, "primary", "✅", "Pago CLP verificado"
    ),
    OrderStatus.PROCESSING: StatusMetadata(
        OrderStatus.PROCESSING.label, "warning", "⚙️", "Tu pedido está siendo procesado"
    ),
    OrderStatus.PAID_OUT: StatusMetadata(
        OrderStatus.PAID_OUT.label, "success", "💰", "Pago VES realizado"
    ),
    OrderStatus.COMPLETED: StatusMetadata(
        OrderStatus.COMPLETED.label, "success", "✓", "¡Tu pedido está completo!"
    ),
    OrderStatus.REJECTED: StatusMetadata(
        OrderStatus.REJECTED.label, "danger", "❌", "Tu pedido ha sido rechazado"
    ),
    OrderStatus.CANCELLED: StatusMetadata(
        OrderStatus.CANCELLED.label, "dark", "🚫", "Tu pedido ha sido cancelado"
    ),
}

DEFAULT_NOTIFICATION = "Estado de pedido actualizado"


def status_metadata(status: str) -> StatusMetadata:
    """Metadata for ``status``; unknown values get a neutral fallback."""
    return STATUS_METADATA.get(
        status, StatusMetadata(str(status), "secondary", "•", DEFAULT_NOTIFICATION)
    )
