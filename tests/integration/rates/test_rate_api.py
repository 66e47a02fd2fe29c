"""Integration tests for the exchange rate API."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.core.models import SecurityAlert
from modules.rates.models import ExchangeRate

pytestmark = pytest.mark.integration

RATE_URL = "/api/v1/rates/current/"


class TestGetRate:
    def test_current(self, customer_client, exchange_rate):
        response = customer_client.get(RATE_URL)

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["clp_to_ves"]) == Decimal("36.5000")
        assert body["updated_by_name"] == "Operador"

    def test_not_configured(self, customer_client):
        response = customer_client.get(RATE_URL)
        assert response.status_code == 409
        assert response.json()["type"] == "failed-precondition"


class TestUpdateRate:
    def test_admin_updates(self, admin_client, admin_user, exchange_rate):
        response = admin_client.put(RATE_URL, {"clp_to_ves": "38.12345"}, format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert Decimal(body["rate"]["clp_to_ves"]) == Decimal("38.1235")
        assert body["rate"]["updated_by"] == str(admin_user.pk)
        assert ExchangeRate.objects.count() == 1

    def test_first_rate(self, admin_client):
        response = admin_client.put(RATE_URL, {"clp_to_ves": "36.5"}, format="json")
        assert response.status_code == 200
        assert ExchangeRate.objects.count() == 1

    @pytest.mark.parametrize("value", ["0", "-1", "1000.5", "abc"])
    def test_invalid_values(self, admin_client, value):
        response = admin_client.put(RATE_URL, {"clp_to_ves": value}, format="json")
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "clp_to_ves"

    def test_customer_forbidden(self, customer_client, exchange_rate):
        response = customer_client.put(RATE_URL, {"clp_to_ves": "40"}, format="json")

        assert response.status_code == 403
        assert SecurityAlert.objects.filter(attempted_action="updateRate").count() == 1
        exchange_rate.refresh_from_db()
        assert exchange_rate.clp_to_ves == Decimal("36.5000")

    def test_strict_limit(self, admin_client, settings):
        settings.STRICT_RATE_LIMIT = 1
        assert admin_client.put(RATE_URL, {"clp_to_ves": "36"}, format="json").status_code == 200
        response = admin_client.put(RATE_URL, {"clp_to_ves": "37"}, format="json")
        assert response.status_code == 429
