"""Account repositories package."""

from modules.accounts.repositories.django_repository import (
    SavedBankAccountDjangoRepository,
    UserProfileDjangoRepository,
)
from modules.accounts.repositories.interfaces import (
    ISavedBankAccountRepository,
    IUserProfileRepository,
)

__all__ = [
    "ISavedBankAccountRepository",
    "IUserProfileRepository",
    "SavedBankAccountDjangoRepository",
    "UserProfileDjangoRepository",
]
