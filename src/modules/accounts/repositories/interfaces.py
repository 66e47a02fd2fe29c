"""Account repository interfaces."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IDeletableRepository, IRepository

if TYPE_CHECKING:
    from modules.accounts.models import SavedBankAccount, UserProfile


class IUserProfileRepository(IRepository["UserProfile"]):
    """Repository contract for user profiles (keyed by identity ``uid``)."""

    @abstractmethod
    def get_by_uid(self, uid: str) -> Optional[UserProfile]:
        """Retrieve the profile of an identity, or ``None``."""

    @abstractmethod
    def upsert(self, uid: str, defaults: Dict[str, Any]) -> UserProfile:
        """Create the profile or update the given fields in place."""


class ISavedBankAccountRepository(IDeletableRepository["SavedBankAccount"]):
    """Repository contract for saved bank accounts (alive rows only)."""

    @abstractmethod
    def list_for_owner(self, owner_id: str) -> List[SavedBankAccount]:
        """Saved accounts of one customer, most recently used first."""

    @abstractmethod
    def get_for_owner(self, owner_id: str, id: str) -> Optional[SavedBankAccount]:
        """Retrieve one account only if it belongs to ``owner_id``."""

    @abstractmethod
    def find_by_account_number(
        self, owner_id: str, account_number: str
    ) -> Optional[SavedBankAccount]:
        """Look up a duplicate by account number for the same owner."""
