"""Django ORM implementations of the account repositories.

Error handling follows the Null Object pattern: look-ups return ``None``
instead of raising; the Service Layer decides what a miss means.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.accounts.models import SavedBankAccount, UserProfile
from modules.accounts.repositories.interfaces import (
    ISavedBankAccountRepository,
    IUserProfileRepository,
)

logger = structlog.get_logger(__name__)


class UserProfileDjangoRepository(IUserProfileRepository):
    def get_by_id(self, id: str) -> Optional[UserProfile]:
        try:
            return UserProfile.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_uid(self, uid: str) -> Optional[UserProfile]:
        return UserProfile.objects.filter(uid=uid).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[UserProfile]:
        queryset = UserProfile.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: UserProfile) -> UserProfile:
        entity.save()
        logger.info("profile.saved", uid=entity.uid, role=entity.role)
        return entity

    @transaction.atomic
    def upsert(self, uid: str, defaults: Dict[str, Any]) -> UserProfile:
        profile, created = UserProfile.objects.select_for_update().update_or_create(
            uid=uid, defaults=defaults
        )
        logger.info("profile.upserted", uid=uid, created=created)
        return profile


class SavedBankAccountDjangoRepository(ISavedBankAccountRepository):
    def get_by_id(self, id: str) -> Optional[SavedBankAccount]:
        try:
            return SavedBankAccount.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_owner(self, owner_id: str, id: str) -> Optional[SavedBankAccount]:
        try:
            return (
                SavedBankAccount.objects.alive()
                .filter(id=id, owner_id=owner_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> List[SavedBankAccount]:
        queryset = SavedBankAccount.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_owner(self, owner_id: str) -> List[SavedBankAccount]:
        return self.list({"owner_id": owner_id})

    def find_by_account_number(
        self, owner_id: str, account_number: str
    ) -> Optional[SavedBankAccount]:
        return (
            SavedBankAccount.objects.alive()
            .filter(owner_id=owner_id, beneficiary_account_number=account_number)
            .first()
        )

    @transaction.atomic
    def save(self, entity: SavedBankAccount) -> SavedBankAccount:
        is_new = entity._state.adding
        entity.save()
        logger.info(
            "saved_account.saved", saved_account_id=str(entity.id), is_new=is_new
        )
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a saved account by ID."""
        account = self.get_by_id(id)
        if not account:
            return False
        account.delete()
        logger.info("saved_account.soft_deleted", saved_account_id=str(id))
        return True
