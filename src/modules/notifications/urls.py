"""Notification URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.notifications.views import DeviceTokenViewSet

device_tokens = DeviceTokenViewSet.as_view({"post": "create", "delete": "unregister"})

urlpatterns = [
    path("device-tokens/", device_tokens, name="device-tokens"),
]
