from rest_framework import serializers

from modules.notifications.models import DeviceToken


class DeviceTokenSerializer(serializers.ModelSerializer):
    class Meta:
        model = DeviceToken
        fields = ["id", "token", "user_agent", "created_at"]
        read_only_fields = fields
