from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.accounts.repositories.django_repository import (
    SavedBankAccountDjangoRepository,
)
from modules.accounts.services import SavedBankAccountService
from modules.core.authorization import Actor, Role
from modules.core.ratelimit import InMemoryRateLimiter
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.rates.models import ExchangeRate
from modules.rates.repositories.django_repository import ExchangeRateDjangoRepository

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Rate-limit counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_user():
    return User.objects.create_user(
        username="maria", password="testpass123", first_name="María", last_name="Pérez"
    )


@pytest.fixture()
def other_customer_user():
    return User.objects.create_user(username="jose", password="testpass123")


@pytest.fixture()
def admin_user():
    return User.objects.create_user(
        username="operador", password="testpass123", is_staff=True
    )


@pytest.fixture()
def customer_client(customer_user):
    client = APIClient()
    client.force_authenticate(user=customer_user)
    return client


@pytest.fixture()
def other_customer_client(other_customer_user):
    client = APIClient()
    client.force_authenticate(user=other_customer_user)
    return client


@pytest.fixture()
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture()
def customer():
    return Actor(id="cust-1", role=Role.CUSTOMER, display_name="María Pérez")


@pytest.fixture()
def other_customer():
    return Actor(id="cust-2", role=Role.CUSTOMER, display_name="José Rojas")


@pytest.fixture()
def admin():
    return Actor(id="admin-1", role=Role.ADMIN, display_name="Operador")


# ---------------------------------------------------------------------------
# Domain data
# ---------------------------------------------------------------------------


@pytest.fixture()
def exchange_rate():
    return ExchangeRate.objects.create(
        clp_to_ves=Decimal("36.5000"), updated_by="admin-1", updated_by_name="Operador"
    )


@pytest.fixture()
def beneficiary_payload():
    return {
        "name": "Carlos Gómez",
        "id_number": "V-12.345.678",
        "bank": "Banco de Venezuela",
        "account_type": "corriente",
        "account_number": "0102-0123-4567-8901-2345",
        "phone": "0414-123-4567",
        "email": "carlos@example.com",
    }


@pytest.fixture()
def order_service():
    """OrderService with roomy in-memory limiters."""
    return OrderService(
        order_repository=OrderDjangoRepository(),
        rate_repository=ExchangeRateDjangoRepository(),
        saved_accounts=SavedBankAccountService(
            repository=SavedBankAccountDjangoRepository()
        ),
        order_limiter=InMemoryRateLimiter("order", 1000, 60),
        mutation_limiter=InMemoryRateLimiter("default", 1000, 60),
    )


@pytest.fixture()
def make_order(order_service, customer, exchange_rate, beneficiary_payload):
    """Create an order for ``customer`` (or ``actor``) through the service."""

    def _make(amount_source=50000, actor=None, **extra):
        payload = {
            "amount_source": amount_source,
            "beneficiary": beneficiary_payload,
            **extra,
        }
        return order_service.create_order(actor or customer, payload).order

    return _make


@pytest.fixture()
def advance(order_service, customer, admin):
    """Drive an order along the happy path up to ``target``."""
    path = [
        ("receipt_uploaded", None),
        ("receipt_verified", "transition"),
        ("processing", "transition"),
        ("paid_out", "payout"),
        ("completed", "transition"),
    ]

    def _advance(order, target):
        for status, how in path:
            if how is None:
                order = order_service.upload_source_receipt(
                    customer, str(order.id), {"receipt_ref": "receipts/clp-001.jpg"}
                )
            elif how == "payout":
                order = order_service.confirm_payout(
                    admin, str(order.id), {"transfer_reference": "VES-TRX-001"}
                )
            else:
                order = order_service.transition_status(
                    admin, str(order.id), {"new_status": status}
                )
            if status == target:
                return order
        raise AssertionError(f"unknown target status {target}")

    return _advance
