"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.  Service
errors propagate to ``standard_exception_handler``; the view never
catches them itself.
"""

from __future__ import annotations

from typing import Any, Dict

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.identity import actor_from_request
from modules.accounts.repositories.django_repository import (
    SavedBankAccountDjangoRepository,
)
from modules.accounts.services import SavedBankAccountService
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import MutationKind
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    OrderEventSerializer,
    OrderListSerializer,
    OrderSerializer,
)
from modules.orders.services import OrderService
from modules.rates.repositories.django_repository import ExchangeRateDjangoRepository


def _payload(request: Request) -> Dict[str, Any]:
    data = request.data
    return dict(data.items()) if hasattr(data, "items") else {}


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``; all writes go through
    the service/repository layer.
    """

    queryset = Order.objects.none()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_name", "beneficiary_name"]
    ordering_fields = ["created_at", "amount_source", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            rate_repository=ExchangeRateDjangoRepository(),
            saved_accounts=SavedBankAccountService(
                repository=SavedBankAccountDjangoRepository()
            ),
        )

    def get_queryset(self):
        return self._service.visible_orders(actor_from_request(self.request))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        payload = _payload(request)
        idempotency_key = request.headers.get("Idempotency-Key")
        if idempotency_key:
            payload["idempotency_key"] = idempotency_key

        result = self._service.create_order(actor_from_request(request), payload)
        return Response(
            {
                "success": True,
                "order_id": result.order_id,
                "order_number": result.order_number,
                "amount_target": str(result.amount_target),
                "order": OrderSerializer(result.order).data,
            },
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Admins see every order, customers only their own.  Filtering is
        handled by ``OrderFilter``; results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(actor_from_request(request), str(pk))
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def events(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/events/"""
        events = self._service.list_events(actor_from_request(request), str(pk))
        return Response(OrderEventSerializer(events, many=True).data)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate(self, request: Request, pk: str | None, kind: MutationKind) -> Response:
        order = self._service.apply_mutation(
            actor_from_request(request), str(pk), kind, _payload(request)
        )
        return Response({"success": True, "order": OrderSerializer(order).data})

    @action(detail=True, methods=["post"], url_path="source-receipt")
    def source_receipt(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/source-receipt/  ``{"receipt_ref", "note"}``"""
        return self._mutate(request, pk, MutationKind.UPLOAD_SOURCE_RECEIPT)

    @action(detail=True, methods=["post"])
    def transition(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/transition/  ``{"new_status", "note"}``"""
        return self._mutate(request, pk, MutationKind.TRANSITION_STATUS)

    @action(detail=True, methods=["post"], url_path="destination-receipt")
    def destination_receipt(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/destination-receipt/  ``{"receipt_ref"}``"""
        return self._mutate(request, pk, MutationKind.ATTACH_DESTINATION_RECEIPT)

    @action(detail=True, methods=["post"], url_path="confirm-payout")
    def confirm_payout(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/confirm-payout/"""
        return self._mutate(request, pk, MutationKind.CONFIRM_PAYOUT)
