"""Unit tests for OrderService.

Covers:
- Creation: rate snapshot, initial event, amount boundaries, idempotency,
  saved accounts, missing rate, order limiter.
- Authorization: who may call what, and one security alert per denial.
- Customer receipt upload, admin transitions, resubmission.
- Destination receipt and payout confirmation (set once).
- Visibility of orders and their events.
- The end-to-end lifecycle of a 50 000 CLP order at 36.5.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.accounts.models import SavedBankAccount
from modules.accounts.exceptions import SavedAccountNotFound
from modules.core.exceptions import (
    InvalidArgument,
    PermissionDeniedError,
    ResourceExhausted,
    Unauthenticated,
)
from modules.core.models import AuditLog, AuditResult, SecurityAlert
from modules.core.ratelimit import InMemoryRateLimiter
from modules.orders.constants import OrderStatus
from modules.orders.dtos import MutationKind
from modules.orders.exceptions import (
    DestinationReceiptNotAllowed,
    InvalidOrderStatus,
    OrderNotFound,
    ReceiptAlreadyAttached,
)
from modules.orders.models import Order, OrderEvent, verify_event_chain
from modules.rates.exceptions import RateNotConfigured
from modules.rates.repositories.django_repository import ExchangeRateDjangoRepository
from modules.rates.services import RateService

pytestmark = pytest.mark.unit


def _payload(beneficiary, amount=50000, **extra):
    return {"amount_source": amount, "beneficiary": beneficiary, **extra}


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_snapshots_rate_and_amount(
        self, order_service, customer, exchange_rate, beneficiary_payload
    ):
        result = order_service.create_order(customer, _payload(beneficiary_payload))

        order = Order.objects.get(id=result.order_id)
        assert result.created is True
        assert order.status == OrderStatus.CREATED
        assert order.rate_snapshot == Decimal("36.5000")
        assert order.amount_target == Decimal("1825000")
        assert result.amount_target == Decimal("1825000")
        assert order.customer_id == customer.id
        assert order.customer_name == "María Pérez"

    def test_normalizes_beneficiary(
        self, order_service, customer, exchange_rate, beneficiary_payload
    ):
        order = order_service.create_order(customer, _payload(beneficiary_payload)).order
        assert order.beneficiary_id_number == "V12345678"
        assert order.beneficiary_account_number == "01020123456789012345"
        assert order.beneficiary_phone == "04141234567"

    def test_records_creation_event(
        self, order_service, customer, exchange_rate, beneficiary_payload
    ):
        order = order_service.create_order(customer, _payload(beneficiary_payload)).order

        event = OrderEvent.objects.get(order=order)
        assert event.from_status is None
        assert event.to_status == OrderStatus.CREATED
        assert event.actor_id == customer.id

    def test_minimum_amount_boundary(
        self, order_service, customer, exchange_rate, beneficiary_payload
    ):
        with pytest.raises(InvalidArgument) as exc_info:
            order_service.create_order(customer, _payload(beneficiary_payload, 999))
        assert exc_info.value.field == "amount_source"
        assert "Minimum amount is 1000 CLP." in exc_info.value.message
        assert Order.objects.count() == 0

        result = order_service.create_order(customer, _payload(beneficiary_payload, 1000))
        assert result.order.amount_target == Decimal("36500")

    def test_maximum_amount(self, order_service, customer, exchange_rate, beneficiary_payload):
        order_service.create_order(customer, _payload(beneficiary_payload, 10_000_000))
        with pytest.raises(InvalidArgument):
            order_service.create_order(
                customer, _payload(beneficiary_payload, 10_000_001)
            )

    def test_invalid_beneficiary_names_field(
        self, order_service, customer, exchange_rate, beneficiary_payload
    ):
        beneficiary = {**beneficiary_payload, "account_number": "0102-0123"}
        with pytest.raises(InvalidArgument) as exc_info:
            order_service.create_order(customer, _payload(beneficiary))
        assert exc_info.value.field == "beneficiary.account_number"

    def test_without_rate(self, order_service, customer, beneficiary_payload):
        with pytest.raises(RateNotConfigured):
            order_service.create_order(customer, _payload(beneficiary_payload))
        assert Order.objects.count() == 0
        assert AuditLog.objects.filter(
            action="createOrder", result=AuditResult.FAILURE
        ).exists()

    def test_idempotency_key_returns_existing(
        self, order_service, customer, exchange_rate, beneficiary_payload
    ):
        payload = _payload(beneficiary_payload, idempotency_key="abc-123")
        first = order_service.create_order(customer, payload)
        second = order_service.create_order(customer, payload)

        assert first.created is True
        assert second.created is False
        assert second.order_id == first.order_id
        assert Order.objects.count() == 1
        assert OrderEvent.objects.count() == 1

    def test_idempotency_key_is_per_customer(
        self, order_service, customer, other_customer, exchange_rate, beneficiary_payload
    ):
        payload = _payload(beneficiary_payload, idempotency_key="same-key")
        first = order_service.create_order(customer, payload)
        second = order_service.create_order(other_customer, payload)

        assert second.created is True
        assert second.order_id != first.order_id

    def test_from_saved_account(self, order_service, customer, exchange_rate):
        account = SavedBankAccount.objects.create(
            owner_id=customer.id,
            alias="Mamá",
            beneficiary_name="Rosa Gómez",
            beneficiary_id_number="V9876543",
            beneficiary_bank="Banesco",
            beneficiary_account_type="ahorro",
            beneficiary_account_number="01340000111122223333",
            beneficiary_phone="04241234567",
        )

        order = order_service.create_order(
            customer, {"amount_source": 20000, "saved_account_id": str(account.id)}
        ).order

        assert order.beneficiary_name == "Rosa Gómez"
        assert order.beneficiary_account_number == "01340000111122223333"
        account.refresh_from_db()
        assert account.use_count == 1
        assert account.last_used_at is not None

    def test_saved_account_of_another_customer(
        self, order_service, customer, other_customer, exchange_rate
    ):
        account = SavedBankAccount.objects.create(
            owner_id=other_customer.id,
            alias="Ajena",
            beneficiary_name="X",
            beneficiary_id_number="V9876543",
            beneficiary_bank="Banesco",
            beneficiary_account_type="ahorro",
            beneficiary_account_number="01340000111122223333",
            beneficiary_phone="04241234567",
        )
        with pytest.raises(SavedAccountNotFound):
            order_service.create_order(
                customer, {"amount_source": 20000, "saved_account_id": str(account.id)}
            )

    def test_requires_exactly_one_beneficiary_source(
        self, order_service, customer, exchange_rate
    ):
        with pytest.raises(InvalidArgument):
            order_service.create_order(customer, {"amount_source": 20000})

    def test_admin_cannot_create(
        self, order_service, admin, exchange_rate, beneficiary_payload
    ):
        with pytest.raises(PermissionDeniedError):
            order_service.create_order(admin, _payload(beneficiary_payload))
        assert SecurityAlert.objects.filter(
            actor_id=admin.id, attempted_action="createOrder"
        ).count() == 1

    def test_anonymous_cannot_create(self, order_service, exchange_rate, beneficiary_payload):
        with pytest.raises(Unauthenticated):
            order_service.create_order(None, _payload(beneficiary_payload))
        assert SecurityAlert.objects.filter(actor_id="anonymous").count() == 1

    def test_order_limiter(self, order_service, customer, exchange_rate, beneficiary_payload):
        order_service._order_limiter = InMemoryRateLimiter("order", 2, 60)
        order_service.create_order(customer, _payload(beneficiary_payload))
        order_service.create_order(customer, _payload(beneficiary_payload))

        with pytest.raises(ResourceExhausted) as exc_info:
            order_service.create_order(customer, _payload(beneficiary_payload))

        assert exc_info.value.message == "Too many orders. Please wait a minute."
        assert Order.objects.count() == 2


class TestRateSnapshotImmutability:
    def test_rate_update_does_not_touch_existing_orders(
        self, order_service, customer, admin, exchange_rate, beneficiary_payload
    ):
        order = order_service.create_order(customer, _payload(beneficiary_payload)).order

        RateService(ExchangeRateDjangoRepository()).update_rate(
            admin, {"clp_to_ves": "40.1234"}
        )
        newer = order_service.create_order(customer, _payload(beneficiary_payload)).order

        order.refresh_from_db()
        assert order.rate_snapshot == Decimal("36.5000")
        assert order.amount_target == Decimal("1825000")
        assert newer.rate_snapshot == Decimal("40.1234")
        assert newer.amount_target == Decimal("2006170")


# ---------------------------------------------------------------------------
# Customer receipt upload
# ---------------------------------------------------------------------------


class TestUploadSourceReceipt:
    def test_owner_uploads(self, order_service, make_order, customer):
        order = make_order()

        updated = order_service.upload_source_receipt(
            customer, str(order.id), {"receipt_ref": "receipts/clp.jpg"}
        )

        assert updated.status == OrderStatus.RECEIPT_UPLOADED
        assert updated.source_receipt_ref == "receipts/clp.jpg"

    def test_other_customer_denied(self, order_service, make_order, other_customer):
        order = make_order()

        with pytest.raises(PermissionDeniedError):
            order_service.upload_source_receipt(
                other_customer, str(order.id), {"receipt_ref": "receipts/x.jpg"}
            )

        assert Order.objects.get(id=order.id).status == OrderStatus.CREATED
        assert SecurityAlert.objects.filter(actor_id=other_customer.id).count() == 1

    def test_admin_denied(self, order_service, make_order, admin):
        order = make_order()
        with pytest.raises(PermissionDeniedError):
            order_service.upload_source_receipt(
                admin, str(order.id), {"receipt_ref": "receipts/x.jpg"}
            )
        assert SecurityAlert.objects.filter(actor_id=admin.id).count() == 1

    def test_missing_receipt_ref(self, order_service, make_order, customer):
        order = make_order()
        with pytest.raises(InvalidArgument) as exc_info:
            order_service.upload_source_receipt(customer, str(order.id), {"receipt_ref": " "})
        assert exc_info.value.field == "receipt_ref"

    def test_twice_is_invalid_transition(self, order_service, make_order, customer):
        order = make_order()
        payload = {"receipt_ref": "receipts/clp.jpg"}
        order_service.upload_source_receipt(customer, str(order.id), payload)

        with pytest.raises(InvalidOrderStatus):
            order_service.upload_source_receipt(customer, str(order.id), payload)

    def test_unknown_order(self, order_service, customer):
        with pytest.raises(OrderNotFound):
            order_service.upload_source_receipt(
                customer, "0190f5a0-0000-7000-8000-000000000000", {"receipt_ref": "r"}
            )


# ---------------------------------------------------------------------------
# Admin transitions
# ---------------------------------------------------------------------------


class TestTransitionStatus:
    def test_admin_moves_order_and_audits(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.RECEIPT_UPLOADED)

        updated = order_service.transition_status(
            admin, str(order.id), {"new_status": "receipt_verified", "note": "OK"}
        )

        assert updated.status == OrderStatus.RECEIPT_VERIFIED
        entry = AuditLog.objects.get(
            action="transitionOrderStatus", result=AuditResult.SUCCESS
        )
        assert entry.resource_id == str(order.id)
        assert entry.changes == {
            "from": "receipt_uploaded",
            "to": "receipt_verified",
            "note": "OK",
        }

    def test_customer_denied_with_one_alert(self, order_service, make_order, customer):
        order = make_order()

        with pytest.raises(PermissionDeniedError):
            order_service.transition_status(
                customer, str(order.id), {"new_status": "cancelled"}
            )

        assert Order.objects.get(id=order.id).status == OrderStatus.CREATED
        assert SecurityAlert.objects.count() == 1
        assert not AuditLog.objects.filter(action="transitionOrderStatus").exists()

    def test_anonymous_denied(self, order_service, make_order):
        order = make_order()
        with pytest.raises(Unauthenticated):
            order_service.transition_status(None, str(order.id), {"new_status": "cancelled"})
        assert SecurityAlert.objects.filter(actor_id="anonymous").count() == 1

    def test_admin_cannot_take_customer_edge(self, order_service, make_order, admin):
        order = make_order()

        with pytest.raises(PermissionDeniedError):
            order_service.transition_status(
                admin, str(order.id), {"new_status": "receipt_uploaded"}
            )

        assert Order.objects.get(id=order.id).status == OrderStatus.CREATED
        assert SecurityAlert.objects.filter(actor_id=admin.id).count() == 1

    def test_invalid_transition_audited_as_failure(
        self, order_service, make_order, admin
    ):
        order = make_order()

        with pytest.raises(InvalidOrderStatus):
            order_service.transition_status(admin, str(order.id), {"new_status": "completed"})

        entry = AuditLog.objects.get(action="transitionOrderStatus")
        assert entry.result == AuditResult.FAILURE
        assert entry.error_message == "Cannot transition from created to completed."
        assert SecurityAlert.objects.count() == 0

    def test_unknown_status_value(self, order_service, make_order, admin):
        order = make_order()
        with pytest.raises(InvalidArgument) as exc_info:
            order_service.transition_status(admin, str(order.id), {"new_status": "archived"})
        assert exc_info.value.field == "new_status"

    def test_resubmission_clears_receipt(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.RECEIPT_UPLOADED)
        order_service.transition_status(admin, str(order.id), {"new_status": "rejected"})

        resubmitted = order_service.transition_status(
            admin, str(order.id), {"new_status": "created"}
        )

        assert resubmitted.status == OrderStatus.CREATED
        assert resubmitted.source_receipt_ref == ""
        assert resubmitted.amount_target == Decimal("1825000")
        assert resubmitted.beneficiary_account_number == "01020123456789012345"

    def test_mutation_limiter(self, order_service, make_order, admin):
        order_service._mutation_limiter = InMemoryRateLimiter("default", 0, 60)
        order = make_order()

        with pytest.raises(ResourceExhausted):
            order_service.transition_status(admin, str(order.id), {"new_status": "cancelled"})

        assert Order.objects.get(id=order.id).status == OrderStatus.CREATED


# ---------------------------------------------------------------------------
# Destination receipt and payout
# ---------------------------------------------------------------------------


class TestDestinationReceipt:
    def test_attach_while_processing(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.PROCESSING)
        events_before = OrderEvent.objects.filter(order=order).count()

        updated = order_service.attach_destination_receipt(
            admin, str(order.id), {"receipt_ref": "receipts/ves.jpg"}
        )

        assert updated.destination_receipt_ref == "receipts/ves.jpg"
        assert updated.status == OrderStatus.PROCESSING
        assert OrderEvent.objects.filter(order=order).count() == events_before

    def test_attach_only_once(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.PROCESSING)
        payload = {"receipt_ref": "receipts/ves.jpg"}
        order_service.attach_destination_receipt(admin, str(order.id), payload)

        with pytest.raises(ReceiptAlreadyAttached):
            order_service.attach_destination_receipt(
                admin, str(order.id), {"receipt_ref": "receipts/other.jpg"}
            )
        assert (
            Order.objects.get(id=order.id).destination_receipt_ref == "receipts/ves.jpg"
        )

    def test_not_allowed_before_processing(self, order_service, make_order, admin):
        order = make_order()
        with pytest.raises(DestinationReceiptNotAllowed):
            order_service.attach_destination_receipt(
                admin, str(order.id), {"receipt_ref": "receipts/ves.jpg"}
            )
        assert AuditLog.objects.filter(
            action="attachDestinationReceipt", result=AuditResult.FAILURE
        ).exists()

    def test_customer_denied(self, order_service, make_order, advance, customer):
        order = advance(make_order(), OrderStatus.PROCESSING)
        with pytest.raises(PermissionDeniedError):
            order_service.attach_destination_receipt(
                customer, str(order.id), {"receipt_ref": "receipts/ves.jpg"}
            )


class TestConfirmPayout:
    def test_processing_to_paid_out(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.PROCESSING)

        updated = order_service.confirm_payout(
            admin,
            str(order.id),
            {
                "transfer_reference": "VES-998877",
                "destination_receipt_ref": "receipts/ves.jpg",
                "note": "Pago móvil",
            },
        )

        assert updated.status == OrderStatus.PAID_OUT
        assert updated.transfer_reference == "VES-998877"
        assert updated.transferred_at is not None
        assert updated.destination_receipt_ref == "receipts/ves.jpg"

    def test_receipt_already_attached(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.PROCESSING)
        order_service.attach_destination_receipt(
            admin, str(order.id), {"receipt_ref": "receipts/ves.jpg"}
        )

        with pytest.raises(ReceiptAlreadyAttached):
            order_service.confirm_payout(
                admin,
                str(order.id),
                {"transfer_reference": "VES-1", "destination_receipt_ref": "receipts/2.jpg"},
            )

        stored = Order.objects.get(id=order.id)
        assert stored.status == OrderStatus.PROCESSING
        assert stored.transfer_reference == ""

    def test_not_from_verified(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.RECEIPT_VERIFIED)
        with pytest.raises(InvalidOrderStatus):
            order_service.confirm_payout(
                admin, str(order.id), {"transfer_reference": "VES-1"}
            )

    def test_reference_required(self, order_service, make_order, advance, admin):
        order = advance(make_order(), OrderStatus.PROCESSING)
        with pytest.raises(InvalidArgument) as exc_info:
            order_service.confirm_payout(admin, str(order.id), {"transfer_reference": ""})
        assert exc_info.value.field == "transfer_reference"


# ---------------------------------------------------------------------------
# Dispatch and queries
# ---------------------------------------------------------------------------


class TestApplyMutation:
    def test_dispatches_by_kind(self, order_service, make_order, customer):
        order = make_order()
        updated = order_service.apply_mutation(
            customer,
            str(order.id),
            MutationKind.UPLOAD_SOURCE_RECEIPT,
            {"receipt_ref": "receipts/clp.jpg"},
        )
        assert updated.status == OrderStatus.RECEIPT_UPLOADED

    def test_accepts_kind_string(self, order_service, make_order, admin):
        order = make_order()
        updated = order_service.apply_mutation(
            admin, str(order.id), "transition_status", {"new_status": "cancelled"}
        )
        assert updated.status == OrderStatus.CANCELLED

    def test_unknown_kind(self, order_service, make_order, admin):
        order = make_order()
        with pytest.raises(InvalidArgument) as exc_info:
            order_service.apply_mutation(admin, str(order.id), "delete_order", {})
        assert exc_info.value.field == "kind"


class TestQueries:
    def test_owner_and_admin_see_order(self, order_service, make_order, customer, admin):
        order = make_order()
        assert order_service.get_order(customer, str(order.id)).id == order.id
        assert order_service.get_order(admin, str(order.id)).id == order.id

    def test_other_customer_gets_not_found(self, order_service, make_order, other_customer):
        order = make_order()
        with pytest.raises(OrderNotFound):
            order_service.get_order(other_customer, str(order.id))

    def test_list_orders_scoped(
        self, order_service, make_order, customer, other_customer, admin
    ):
        mine = make_order()
        theirs = make_order(actor=other_customer)

        assert [o.id for o in order_service.list_orders(customer)] == [mine.id]
        assert {o.id for o in order_service.list_orders(admin)} == {mine.id, theirs.id}

    def test_list_orders_by_status(self, order_service, make_order, admin):
        make_order()
        cancelled = order_service.transition_status(
            admin, str(make_order().id), {"new_status": "cancelled"}
        )
        listed = order_service.list_orders(admin, status="cancelled")
        assert [o.id for o in listed] == [cancelled.id]

    def test_list_events_oldest_first(self, order_service, make_order, advance, customer):
        order = advance(make_order(), OrderStatus.PROCESSING)
        events = order_service.list_events(customer, str(order.id))
        assert [e.to_status for e in events] == [
            "created",
            "receipt_uploaded",
            "receipt_verified",
            "processing",
        ]


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestFullLifecycle:
    def test_fifty_thousand_clp_at_36_5(
        self, order_service, customer, admin, exchange_rate, beneficiary_payload
    ):
        result = order_service.create_order(customer, _payload(beneficiary_payload))
        assert result.amount_target == Decimal("1825000")
        order_id = result.order_id

        order_service.upload_source_receipt(
            customer, order_id, {"receipt_ref": "receipts/clp.jpg"}
        )
        order_service.transition_status(admin, order_id, {"new_status": "receipt_verified"})
        order_service.transition_status(admin, order_id, {"new_status": "processing"})
        order_service.confirm_payout(
            admin,
            order_id,
            {"transfer_reference": "VES-1", "destination_receipt_ref": "receipts/ves.jpg"},
        )
        order = order_service.transition_status(admin, order_id, {"new_status": "completed"})

        assert order.status == OrderStatus.COMPLETED
        assert order.completed_at is not None
        assert order.is_terminal
        assert order.amount_target == Decimal("1825000")
        assert OrderEvent.objects.filter(order_id=order_id).count() == 6
        assert verify_event_chain(order) == []
        assert SecurityAlert.objects.count() == 0
        assert AuditLog.objects.filter(result=AuditResult.SUCCESS).count() == 5
