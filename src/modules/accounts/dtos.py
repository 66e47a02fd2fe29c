"""Account DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  DTOs are
immutable (``frozen=True``) and normalize input before validating it:

- ``BeneficiaryDTO``: Venezuelan payout destination, shared with orders.
- ``CreateSavedAccountDTO`` / ``UpdateSavedAccountDTO``: saved templates.
- ``SetAdminRoleDTO``: grant or revoke the admin role.
- ``UpdateProfileDTO``: caller's own display data.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

# Cédula: optional V/E prefix + 6-8 digits.  RIF: J/V/G/E + 8-9 digits.
CEDULA_RE = re.compile(r"^[VE]?\d{6,8}$")
RIF_RE = re.compile(r"^[JVGE]\d{8,9}$")
PHONE_RE = re.compile(r"^0(412|414|416|424|426)\d{7}$")
ACCOUNT_NUMBER_RE = re.compile(r"^\d{20}$")


class AccountTypeEnum(StrEnum):
    CORRIENTE = "corriente"
    AHORRO = "ahorro"


def normalize_id_number(value: str) -> str:
    return re.sub(r"[\s.\-]", "", value).upper()


def normalize_digits(value: str) -> str:
    return re.sub(r"[\s\-]", "", value)


class BeneficiaryDTO(BaseModel):
    """Immutable beneficiary record.

    Validates:
    - ``id_number`` is a cédula or RIF (dots, dashes and spaces ignored).
    - ``account_number`` has exactly 20 digits.
    - ``phone`` is a Venezuelan mobile number (``04XX`` + 7 digits).
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str
    id_number: str
    bank: str
    account_type: AccountTypeEnum
    account_number: str
    phone: str
    email: Optional[EmailStr] = None

    @field_validator("name", "bank")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("This field is required.")
        return v

    @field_validator("id_number")
    @classmethod
    def valid_id_number(cls, v: str) -> str:
        v = normalize_id_number(v)
        if not (CEDULA_RE.match(v) or RIF_RE.match(v)):
            raise ValueError("Invalid cédula or RIF.")
        return v

    @field_validator("account_number")
    @classmethod
    def valid_account_number(cls, v: str) -> str:
        v = normalize_digits(v)
        if not ACCOUNT_NUMBER_RE.match(v):
            raise ValueError("Account number must have 20 digits.")
        return v

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        v = normalize_digits(v)
        if not PHONE_RE.match(v):
            raise ValueError("Invalid Venezuelan mobile number.")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Any) -> Any:
        return v or None

    def as_model_fields(self) -> dict[str, str]:
        """Map onto the ``beneficiary_*`` columns of ``BeneficiaryFields``."""
        return {
            "beneficiary_name": self.name,
            "beneficiary_id_number": self.id_number,
            "beneficiary_bank": self.bank,
            "beneficiary_account_type": str(self.account_type),
            "beneficiary_account_number": self.account_number,
            "beneficiary_phone": self.phone,
            "beneficiary_email": self.email or "",
        }


class CreateSavedAccountDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    alias: str
    beneficiary: BeneficiaryDTO

    @field_validator("alias")
    @classmethod
    def alias_must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Alias is required.")
        return v


class UpdateSavedAccountDTO(BaseModel):
    """Only supplied fields are updated; a new beneficiary replaces the old one."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    alias: Optional[str] = None
    beneficiary: Optional[BeneficiaryDTO] = None


class SetAdminRoleDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: str
    is_admin: bool

    @field_validator("user_id")
    @classmethod
    def user_id_required(cls, v: str) -> str:
        if not v:
            raise ValueError("userId is required.")
        return v


class UpdateProfileDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
