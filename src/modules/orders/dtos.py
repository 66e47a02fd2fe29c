"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  DTOs are
immutable (``frozen=True``); the Service Layer validates raw payloads
into them *after* its authorization checks.

Every order mutation has its own payload type; ``MutationKind`` names
them for dispatch.

- ``CreateOrderDTO``: new order (beneficiary or saved account).
- ``UploadSourceReceiptDTO``: customer's CLP receipt.
- ``TransitionOrderDTO``: admin status change.
- ``AttachDestinationReceiptDTO``: admin's VES receipt.
- ``ConfirmPayoutDTO``: admin's payout confirmation.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional
from uuid import UUID

from django.conf import settings
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.accounts.dtos import BeneficiaryDTO
from modules.orders.constants import OrderStatus

MAX_REF_LENGTH = 500
MAX_NOTE_LENGTH = 1000


def _required_ref(value: str, max_length: int = MAX_REF_LENGTH) -> str:
    if not value:
        raise ValueError("This field is required.")
    if len(value) > max_length:
        raise ValueError(f"Must be at most {max_length} characters.")
    return value


def _bounded_note(value: Optional[str]) -> str:
    value = value or ""
    if len(value) > MAX_NOTE_LENGTH:
        raise ValueError(f"Note must be at most {MAX_NOTE_LENGTH} characters.")
    return value


class MutationKind(StrEnum):
    UPLOAD_SOURCE_RECEIPT = "upload_source_receipt"
    TRANSITION_STATUS = "transition_status"
    ATTACH_DESTINATION_RECEIPT = "attach_destination_receipt"
    CONFIRM_PAYOUT = "confirm_payout"


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``amount_source`` is an integer within
      ``[MIN_ORDER_AMOUNT, MAX_ORDER_AMOUNT]`` CLP.
    - exactly one of ``beneficiary`` / ``saved_account_id`` is given.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    amount_source: int
    beneficiary: Optional[BeneficiaryDTO] = None
    saved_account_id: Optional[UUID] = None
    idempotency_key: Optional[str] = None

    @field_validator("amount_source")
    @classmethod
    def amount_within_limits(cls, v: int) -> int:
        if v < settings.MIN_ORDER_AMOUNT:
            raise ValueError(f"Minimum amount is {settings.MIN_ORDER_AMOUNT} CLP.")
        if v > settings.MAX_ORDER_AMOUNT:
            raise ValueError(f"Maximum amount is {settings.MAX_ORDER_AMOUNT} CLP.")
        return v

    @field_validator("idempotency_key")
    @classmethod
    def key_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > 255:
            raise ValueError("Idempotency key must be at most 255 characters.")
        return v or None

    @model_validator(mode="after")
    def one_beneficiary_source(self):
        if (self.beneficiary is None) == (self.saved_account_id is None):
            raise ValueError(
                "Provide either beneficiary details or a saved account, not both."
            )
        return self


class UploadSourceReceiptDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    receipt_ref: str
    note: Optional[str] = ""

    @field_validator("receipt_ref")
    @classmethod
    def receipt_required(cls, v: str) -> str:
        return _required_ref(v)

    @field_validator("note")
    @classmethod
    def note_length(cls, v: Optional[str]) -> str:
        return _bounded_note(v)


class TransitionOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    new_status: OrderStatus
    note: Optional[str] = ""

    @field_validator("note")
    @classmethod
    def note_length(cls, v: Optional[str]) -> str:
        return _bounded_note(v)


class AttachDestinationReceiptDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    receipt_ref: str

    @field_validator("receipt_ref")
    @classmethod
    def receipt_required(cls, v: str) -> str:
        return _required_ref(v)


class ConfirmPayoutDTO(BaseModel):
    """Payout leg confirmation; the VES receipt may be attached at once."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    transfer_reference: str
    destination_receipt_ref: Optional[str] = None
    note: Optional[str] = ""

    @field_validator("transfer_reference")
    @classmethod
    def reference_required(cls, v: str) -> str:
        return _required_ref(v, max_length=120)

    @field_validator("destination_receipt_ref")
    @classmethod
    def receipt_length(cls, v: Optional[str]) -> Optional[str]:
        return _required_ref(v) if v else None

    @field_validator("note")
    @classmethod
    def note_length(cls, v: Optional[str]) -> str:
        return _bounded_note(v)

