"""Account domain exceptions.

Raised by the Service Layer; each subclasses a service error kind so the
REST exception handler can render it without per-view translation.
"""

from __future__ import annotations

from modules.core.exceptions import FailedPrecondition, NotFound


class SavedAccountNotFound(NotFound):
    """The saved bank account does not exist, was deleted, or is not the caller's."""


class SavedAccountAlreadyExists(FailedPrecondition):
    """The caller already saved an account with the same account number."""


class SelfRoleChangeNotAllowed(FailedPrecondition):
    """An admin attempted to revoke their own admin role."""
