"""Order DRF serializers (output only).

Input is validated by the Pydantic DTOs in ``dtos.py`` inside the
Service Layer.  Status presentation comes from ``STATUS_METADATA``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.accounts.serializers import BeneficiarySerializer
from modules.orders.constants import status_metadata
from modules.orders.models import Order, OrderEvent


class StatusDisplaySerializer(serializers.Serializer):
    """``{"value", "label", "severity", "icon"}`` for a status attribute."""

    def to_representation(self, value):
        meta = status_metadata(value)
        return {
            "value": value,
            "label": meta.label,
            "severity": meta.severity,
            "icon": meta.icon,
        }


class OrderEventSerializer(serializers.ModelSerializer):
    to_status_display = StatusDisplaySerializer(source="to_status", read_only=True)

    class Meta:
        model = OrderEvent
        fields = [
            "id",
            "from_status",
            "to_status",
            "to_status_display",
            "actor_id",
            "actor_name",
            "note",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for the order detail."""

    status_display = StatusDisplaySerializer(source="status", read_only=True)
    allowed_next_statuses = serializers.SerializerMethodField()
    beneficiary = BeneficiarySerializer(source="*", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "amount_source",
            "rate_snapshot",
            "amount_target",
            "status",
            "status_display",
            "allowed_next_statuses",
            "is_terminal",
            "beneficiary",
            "source_receipt_ref",
            "destination_receipt_ref",
            "transfer_reference",
            "transferred_at",
            "created_at",
            "updated_at",
            "completed_at",
        ]
        read_only_fields = fields

    def get_allowed_next_statuses(self, obj: Order) -> list[str]:
        return sorted(obj.allowed_next_statuses)


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no beneficiary details)."""

    status_display = StatusDisplaySerializer(source="status", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "amount_source",
            "amount_target",
            "status",
            "status_display",
            "created_at",
        ]
        read_only_fields = fields
