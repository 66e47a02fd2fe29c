"""Account DRF serializers (output only).

Input is validated by the Pydantic DTOs in ``dtos.py`` inside the
Service Layer, after the authorization checks.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.accounts.models import SavedBankAccount, UserProfile


class BeneficiarySerializer(serializers.Serializer):
    """Nested view of the ``beneficiary_*`` columns (orders reuse it)."""

    name = serializers.CharField(source="beneficiary_name")
    id_number = serializers.CharField(source="beneficiary_id_number")
    bank = serializers.CharField(source="beneficiary_bank")
    account_type = serializers.CharField(source="beneficiary_account_type")
    account_number = serializers.CharField(source="beneficiary_account_number")
    phone = serializers.CharField(source="beneficiary_phone")
    email = serializers.CharField(source="beneficiary_email")


class UserProfileSerializer(serializers.ModelSerializer):
    is_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = UserProfile
        fields = ["uid", "full_name", "email", "phone", "role", "is_admin"]
        read_only_fields = fields


class SavedBankAccountSerializer(serializers.ModelSerializer):
    beneficiary = BeneficiarySerializer(source="*", read_only=True)

    class Meta:
        model = SavedBankAccount
        fields = [
            "id",
            "alias",
            "beneficiary",
            "use_count",
            "last_used_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
