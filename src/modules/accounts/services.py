"""Account service layer (Use Cases).

Business rules enforced:
- Only admins grant or revoke the admin role; an admin never revokes
  their own role (the system must keep at least the caller as admin).
- Role changes go through the strict rate limiter and are audited.
- Saved bank accounts belong to one customer; the same account number
  is saved at most once per owner.
- Saved accounts are soft-deleted; orders keep their own beneficiary copy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Union

import structlog
from django.db import DatabaseError, transaction

from modules.accounts.dtos import (
    CreateSavedAccountDTO,
    SetAdminRoleDTO,
    UpdateProfileDTO,
    UpdateSavedAccountDTO,
)
from modules.accounts.exceptions import (
    SavedAccountAlreadyExists,
    SavedAccountNotFound,
    SelfRoleChangeNotAllowed,
)
from modules.accounts.models import SavedBankAccount, UserProfile
from modules.core.audit import AuditLogger, audit_logger
from modules.core.authorization import (
    Actor,
    AuthorizationGate,
    Role,
    authorization_gate,
)
from modules.core.exceptions import ResourceExhausted
from modules.core.ratelimit import strict_rate_limiter
from modules.core.validation import parse_dto

if TYPE_CHECKING:
    from modules.accounts.repositories.interfaces import (
        ISavedBankAccountRepository,
        IUserProfileRepository,
    )
    from modules.core.ratelimit import IRateLimiter

logger = structlog.get_logger(__name__)


class AccountService:
    """Profiles and role management.

    Receives the profile repository, rate limiter, gate and auditor via
    constructor injection.
    """

    def __init__(
        self,
        profile_repository: IUserProfileRepository,
        rate_limiter: Optional[IRateLimiter] = None,
        gate: Optional[AuthorizationGate] = None,
        auditor: Optional[AuditLogger] = None,
    ) -> None:
        self._repo = profile_repository
        self._limiter = rate_limiter or strict_rate_limiter()
        self._gate = gate or authorization_gate
        self._audit = auditor or audit_logger

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_admin_role(
        self, actor: Optional[Actor], dto: Union[SetAdminRoleDTO, Mapping[str, Any]]
    ) -> UserProfile:
        """Grant (``is_admin=True``) or revoke the admin role of ``dto.user_id``.

        Raises:
            Unauthenticated / PermissionDeniedError: caller is not an admin.
            ResourceExhausted: strict limiter exceeded.
            SelfRoleChangeNotAllowed: an admin revoking their own role.
        """
        actor = self._gate.require_admin(actor, "setAdminRole")
        dto = parse_dto(SetAdminRoleDTO, dto)
        log = logger.bind(actor_id=actor.id, target_uid=dto.user_id, is_admin=dto.is_admin)

        if not self._limiter.check_and_increment(actor.id):
            self._audit.log_failure(
                actor.id, "setAdminRole", "user", "Rate limit exceeded", dto.user_id
            )
            raise ResourceExhausted()

        if dto.user_id == actor.id and not dto.is_admin:
            log.warning("account.self_revoke_rejected")
            self._audit.log_failure(
                actor.id,
                "setAdminRole",
                "user",
                "Admin attempted to revoke own role",
                dto.user_id,
            )
            raise SelfRoleChangeNotAllowed("You cannot revoke your own admin role.")

        role = Role.ADMIN if dto.is_admin else Role.CUSTOMER
        with transaction.atomic():
            profile = self._repo.upsert(dto.user_id, {"role": role})

        self._audit.log_success(
            actor.id,
            "setAdminRole",
            "user",
            dto.user_id,
            changes={"role": role},
        )
        log.info("account.role_changed", role=role)
        return profile

    def update_profile(
        self, actor: Optional[Actor], dto: Union[UpdateProfileDTO, Mapping[str, Any]]
    ) -> UserProfile:
        """Update the caller's own display data (never the role)."""
        actor = self._gate.require_authenticated(actor, "updateProfile")
        dto = parse_dto(UpdateProfileDTO, dto)
        with transaction.atomic():
            profile = self._repo.get_by_uid(actor.id) or UserProfile(
                uid=actor.id,
                role=actor.role,
                full_name=actor.display_name,
                email=actor.email,
            )
            for field in ("full_name", "email", "phone"):
                value = getattr(dto, field)
                if value is not None:
                    setattr(profile, field, value)
            profile = self._repo.save(profile)
        logger.info("account.profile_updated", uid=actor.id)
        return profile

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_profile(self, actor: Optional[Actor]) -> UserProfile:
        """The caller's profile; an unsaved one when none was stored yet."""
        actor = self._gate.require_authenticated(actor, "getProfile")
        return self._repo.get_by_uid(actor.id) or UserProfile(
            uid=actor.id, role=actor.role, full_name=actor.display_name, email=actor.email
        )


class SavedBankAccountService:
    """Beneficiary templates owned by the calling customer."""

    def __init__(
        self,
        repository: ISavedBankAccountRepository,
        gate: Optional[AuthorizationGate] = None,
    ) -> None:
        self._repo = repository
        self._gate = gate or authorization_gate

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_account(
        self,
        actor: Optional[Actor],
        dto: Union[CreateSavedAccountDTO, Mapping[str, Any]],
    ) -> SavedBankAccount:
        """Save a beneficiary template.

        Raises:
            SavedAccountAlreadyExists: the caller already saved this
                account number.
        """
        actor = self._gate.require_authenticated(actor, "createSavedAccount")
        dto = parse_dto(CreateSavedAccountDTO, dto)
        log = logger.bind(owner_id=actor.id)

        with transaction.atomic():
            if self._repo.find_by_account_number(actor.id, dto.beneficiary.account_number):
                log.warning("saved_account.duplicate")
                raise SavedAccountAlreadyExists("This account is already saved.")

            account = SavedBankAccount(
                owner_id=actor.id,
                alias=dto.alias,
                **dto.beneficiary.as_model_fields(),
            )
            account = self._repo.save(account)

        log.info("saved_account.created", saved_account_id=str(account.id))
        return account

    def update_account(
        self,
        actor: Optional[Actor],
        account_id: str,
        dto: Union[UpdateSavedAccountDTO, Mapping[str, Any]],
    ) -> SavedBankAccount:
        actor = self._gate.require_authenticated(actor, "updateSavedAccount")
        dto = parse_dto(UpdateSavedAccountDTO, dto)

        with transaction.atomic():
            account = self.get_owned(actor.id, account_id)
            if dto.beneficiary is not None:
                number = dto.beneficiary.account_number
                existing = self._repo.find_by_account_number(actor.id, number)
                if existing is not None and existing.id != account.id:
                    raise SavedAccountAlreadyExists("This account is already saved.")
                for field, value in dto.beneficiary.as_model_fields().items():
                    setattr(account, field, value)
            if dto.alias:
                account.alias = dto.alias
            account = self._repo.save(account)

        logger.info("saved_account.updated", saved_account_id=str(account.id))
        return account

    def delete_account(self, actor: Optional[Actor], account_id: str) -> None:
        """Soft-delete one of the caller's saved accounts."""
        actor = self._gate.require_authenticated(actor, "deleteSavedAccount")
        account = self.get_owned(actor.id, account_id)
        self._repo.delete(str(account.id))

    def mark_used(self, account: SavedBankAccount) -> None:
        """Bump the usage counter; a failure never blocks the caller."""
        try:
            with transaction.atomic():
                account.mark_used()
        except DatabaseError:
            logger.exception(
                "saved_account.mark_used_failed", saved_account_id=str(account.id)
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_accounts(self, actor: Optional[Actor]) -> List[SavedBankAccount]:
        actor = self._gate.require_authenticated(actor, "listSavedAccounts")
        return self._repo.list_for_owner(actor.id)

    def get_account(self, actor: Optional[Actor], account_id: str) -> SavedBankAccount:
        actor = self._gate.require_authenticated(actor, "getSavedAccount")
        return self.get_owned(actor.id, account_id)

    def get_owned(self, owner_id: str, account_id: str) -> SavedBankAccount:
        """Raises ``SavedAccountNotFound`` unless ``owner_id`` owns the account."""
        account = self._repo.get_for_owner(owner_id, str(account_id))
        if account is None:
            raise SavedAccountNotFound(f"Saved account {account_id} not found.")
        return account
