"""Exchange rate API views."""

from __future__ import annotations

from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.identity import actor_from_request
from modules.rates.repositories.django_repository import ExchangeRateDjangoRepository
from modules.rates.serializers import ExchangeRateSerializer
from modules.rates.services import RateService


class RateViewSet(GenericViewSet):
    serializer_class = ExchangeRateSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = RateService(repository=ExchangeRateDjangoRepository())

    @action(detail=False, methods=["get", "put"])
    def current(self, request: Request) -> Response:
        """GET/PUT /api/v1/rates/current/"""
        if request.method == "GET":
            rate = self._service.get_current_rate()
            return Response(ExchangeRateSerializer(rate).data)

        rate = self._service.update_rate(actor_from_request(request), request.data)
        return Response(
            {
                "success": True,
                "message": "Rate updated successfully",
                "rate": ExchangeRateSerializer(rate).data,
            }
        )
