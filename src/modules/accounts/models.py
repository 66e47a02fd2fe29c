"""UserProfile, beneficiary record and SavedBankAccount models.

Business rules implemented:
- A profile is keyed by ``uid``, the opaque id issued by the identity
  provider (local user pk or Auth0 ``sub``); no FK to ``auth.User``.
- ``role`` on the profile is the source of truth once a profile exists.
- Beneficiary details (Venezuelan payout destination) share one shape
  between saved accounts and orders via ``BeneficiaryFields``.
- Saved accounts are soft-deleted; orders keep their own copy of the
  beneficiary, so deleting a template never alters an order.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from modules.core.authorization import Role
from modules.core.models import BaseModel, SoftDeleteModel

BENEFICIARY_FIELDS = (
    "beneficiary_name",
    "beneficiary_id_number",
    "beneficiary_bank",
    "beneficiary_account_type",
    "beneficiary_account_number",
    "beneficiary_phone",
    "beneficiary_email",
)


class AccountType(models.TextChoices):
    CORRIENTE = "corriente", "Corriente"
    AHORRO = "ahorro", "Ahorro"


class BeneficiaryFields(models.Model):
    """Abstract beneficiary record (who receives the VES payout)."""

    beneficiary_name = models.CharField(max_length=255)
    beneficiary_id_number = models.CharField(max_length=12)
    beneficiary_bank = models.CharField(max_length=120)
    beneficiary_account_type = models.CharField(
        max_length=10, choices=AccountType.choices
    )
    beneficiary_account_number = models.CharField(max_length=20)
    beneficiary_phone = models.CharField(max_length=15)
    beneficiary_email = models.EmailField(max_length=254, blank=True, default="")

    class Meta:
        abstract = True

    def beneficiary_as_dict(self) -> dict[str, str]:
        return {field: getattr(self, field) for field in BENEFICIARY_FIELDS}


class UserProfile(BaseModel):
    uid = models.CharField(max_length=128, unique=True)
    full_name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(max_length=254, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.CUSTOMER)

    class Meta:
        db_table = "user_profiles"
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["role"], name="profiles_role_idx")]

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def __str__(self) -> str:
        return f"{self.full_name or self.uid} ({self.role})"


class SavedBankAccount(BeneficiaryFields, SoftDeleteModel):
    """Reusable beneficiary template owned by a customer."""

    owner_id = models.CharField(max_length=128, db_index=True)
    alias = models.CharField(max_length=80)
    use_count = models.PositiveIntegerField(default=0)
    last_used_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "saved_bank_accounts"
        ordering = ["-last_used_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["owner_id", "beneficiary_account_number"],
                name="saved_acc_owner_number_idx",
            ),
        ]

    def mark_used(self) -> None:
        self.use_count += 1
        self.last_used_at = timezone.now()
        self.save(update_fields=["use_count", "last_used_at"])

    def __str__(self) -> str:
        suffix = self.beneficiary_account_number[-4:] or "????"
        return f"{self.alias} (***{suffix})"
