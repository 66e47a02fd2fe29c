"""Push device token registration views."""

from __future__ import annotations

from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.identity import actor_from_request
from modules.notifications.repositories.django_repository import (
    DeviceTokenDjangoRepository,
)
from modules.notifications.serializers import DeviceTokenSerializer
from modules.notifications.services import DeviceTokenService


class DeviceTokenViewSet(GenericViewSet):
    serializer_class = DeviceTokenSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = DeviceTokenService(repository=DeviceTokenDjangoRepository())

    def create(self, request: Request) -> Response:
        """POST /api/v1/device-tokens/  ``{"token", "user_agent"}``"""
        data = dict(request.data.items())
        data.setdefault("user_agent", request.headers.get("User-Agent", "")[:255])
        device = self._service.register(actor_from_request(request), data)
        return Response(DeviceTokenSerializer(device).data, status=status.HTTP_201_CREATED)

    def unregister(self, request: Request) -> Response:
        """DELETE /api/v1/device-tokens/  ``{"token"}``"""
        self._service.unregister(actor_from_request(request), request.data)
        return Response(status=status.HTTP_204_NO_CONTENT)
