from __future__ import annotations

from rest_framework import serializers

from modules.rates.models import ExchangeRate


class ExchangeRateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExchangeRate
        fields = ["clp_to_ves", "updated_at", "updated_by", "updated_by_name"]
        read_only_fields = fields
