"""Account API views.

Service errors propagate to ``standard_exception_handler``, which renders
them in the common error envelope.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.identity import actor_from_request
from modules.accounts.models import SavedBankAccount
from modules.accounts.repositories.django_repository import (
    SavedBankAccountDjangoRepository,
    UserProfileDjangoRepository,
)
from modules.accounts.serializers import (
    SavedBankAccountSerializer,
    UserProfileSerializer,
)
from modules.accounts.services import AccountService, SavedBankAccountService


class AccountViewSet(GenericViewSet):
    """Caller profile and admin role management."""

    serializer_class = UserProfileSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = AccountService(profile_repository=UserProfileDjangoRepository())

    @action(detail=False, methods=["get", "patch"])
    def me(self, request: Request) -> Response:
        """GET/PATCH /api/v1/accounts/me/"""
        actor = actor_from_request(request)
        if request.method == "GET":
            profile = self._service.get_profile(actor)
        else:
            profile = self._service.update_profile(actor, request.data)
        return Response(UserProfileSerializer(profile).data)

    @action(detail=False, methods=["post"], url_path="admin-role")
    def admin_role(self, request: Request) -> Response:
        """POST /api/v1/accounts/admin-role/  ``{"user_id", "is_admin"}``"""
        profile = self._service.set_admin_role(actor_from_request(request), request.data)
        return Response(
            {"success": True, "profile": UserProfileSerializer(profile).data}
        )


class SavedBankAccountViewSet(GenericViewSet):
    """Customer's saved beneficiaries.

    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    queryset = SavedBankAccount.objects.none()
    serializer_class = SavedBankAccountSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = SavedBankAccountService(
            repository=SavedBankAccountDjangoRepository()
        )

    def list(self, request: Request) -> Response:
        """GET /api/v1/saved-accounts/"""
        accounts = self._service.list_accounts(actor_from_request(request))
        return Response(SavedBankAccountSerializer(accounts, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/saved-accounts/{pk}/"""
        account = self._service.get_account(actor_from_request(request), str(pk))
        return Response(SavedBankAccountSerializer(account).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/saved-accounts/"""
        account = self._service.create_account(actor_from_request(request), request.data)
        return Response(
            SavedBankAccountSerializer(account).data, status=status.HTTP_201_CREATED
        )

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/saved-accounts/{pk}/"""
        account = self._service.update_account(
            actor_from_request(request), str(pk), request.data
        )
        return Response(SavedBankAccountSerializer(account).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/saved-accounts/{pk}/"""
        self._service.delete_account(actor_from_request(request), str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)
