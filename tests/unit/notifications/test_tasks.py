"""Unit tests for the push notification task and dispatcher."""

from __future__ import annotations

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from kombu.exceptions import OperationalError

from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.exceptions import PushGatewayError
from modules.notifications.gateways import PushResult
from modules.notifications.models import DeviceToken
from modules.notifications.tasks import build_status_message, send_order_status_push
from modules.orders.events import OrderStatusChanged

pytestmark = pytest.mark.unit


@pytest.fixture()
def gateway():
    gateway = MagicMock()
    with patch("modules.notifications.tasks.get_push_gateway", return_value=gateway):
        yield gateway


class TestBuildStatusMessage:
    def test_title_body_and_link(self, settings):
        settings.APP_URL = "https://remesas.example/"
        message = build_status_message("abc", "ORD-1", "paid_out")
        assert message.title == "Pedido #ORD-1"
        assert message.body == "Pago VES realizado"
        assert message.link == "https://remesas.example/app/orders/abc"
        assert message.data["status"] == "paid_out"

    def test_unknown_status_uses_default_body(self):
        assert build_status_message("a", "ORD-1", "archived").body == (
            "Estado de pedido actualizado"
        )


class TestSendOrderStatusPush:
    def test_sends_to_customer_tokens(self, gateway):
        DeviceToken.objects.create(customer_id="cust-1", token="t1")
        DeviceToken.objects.create(customer_id="cust-1", token="t2")
        DeviceToken.objects.create(customer_id="cust-2", token="t3")
        gateway.send.return_value = PushResult(sent=2)

        result = send_order_status_push("o1", "ORD-1", "cust-1", "completed")

        tokens, message = gateway.send.call_args.args
        assert sorted(tokens) == ["t1", "t2"]
        assert message.body == "¡Tu pedido está completo!"
        assert result == {"sent": 2, "failed": 0, "removed": 0}

    def test_removes_invalid_tokens(self, gateway):
        DeviceToken.objects.create(customer_id="cust-1", token="good")
        DeviceToken.objects.create(customer_id="cust-1", token="stale")
        gateway.send.return_value = PushResult(sent=1, failed=1, invalid_tokens=["stale"])

        result = send_order_status_push("o1", "ORD-1", "cust-1", "processing")

        assert result["removed"] == 1
        assert list(DeviceToken.objects.values_list("token", flat=True)) == ["good"]

    def test_no_tokens_skips_gateway(self, gateway):
        result = send_order_status_push("o1", "ORD-1", "cust-1", "processing")
        gateway.send.assert_not_called()
        assert result["sent"] == 0

    def test_gateway_failure_never_raises(self, gateway):
        DeviceToken.objects.create(customer_id="cust-1", token="t1")
        gateway.send.side_effect = PushGatewayError("timeout")

        result = send_order_status_push("o1", "ORD-1", "cust-1", "processing")

        assert result == {"sent": 0, "failed": 1, "removed": 0}
        assert DeviceToken.objects.count() == 1

    def test_malformed_push_reply_never_raises(self, settings):
        settings.PUSH_SERVICE_URL = "https://push.example/send"
        DeviceToken.objects.create(customer_id="cust-1", token="t1")
        response = MagicMock()
        response.raise_for_status.return_value = None
        response.json.return_value = [{"token": "t1", "success": True}]

        with patch("modules.notifications.gateways.requests.post", return_value=response):
            result = send_order_status_push("o1", "ORD-1", "cust-1", "processing")

        assert result == {"sent": 0, "failed": 1, "removed": 0}
        assert DeviceToken.objects.count() == 1


class TestNotificationDispatcher:
    def _event(self):
        return OrderStatusChanged(
            aggregate_id=uuid4(),
            customer_id="cust-1",
            order_number="ORD-1",
            old_status="processing",
            new_status="paid_out",
        )

    def test_enqueues_task(self):
        task = MagicMock()
        event = self._event()

        NotificationDispatcher(task=task).handle(event)

        task.delay.assert_called_once_with(
            str(event.aggregate_id), "ORD-1", "cust-1", "paid_out"
        )

    def test_broker_failure_is_swallowed(self):
        task = MagicMock()
        task.delay.side_effect = OperationalError("broker down")

        NotificationDispatcher(task=task).order_status_changed(self._event())

        task.delay.assert_called_once()
