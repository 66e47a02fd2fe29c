import pytest

from config.settings import mask_sensitive_data

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    @pytest.mark.parametrize("value", ["V-12345678", "E12345678", "J-123456789"])
    def test_id_numbers_masked(self, value):
        result = mask_sensitive_data(None, None, {"event": "test", "doc": f"id {value}"})
        assert value not in result["doc"]
        assert "***MASKED***" in result["doc"]

    def test_account_number_masked(self):
        result = mask_sensitive_data(
            None, None, {"event": "test", "account": "01020123456789012345"}
        )
        assert result["account"] == "***MASKED***"

    def test_password_masked(self):
        result = mask_sensitive_data(None, None, {"event": "test", "data": "password='s3cret123'"})
        assert "s3cret123" not in result["data"]

    def test_token_masked(self):
        result = mask_sensitive_data(None, None, {"event": "test", "header": "token=abc123xyz"})
        assert "abc123xyz" not in result["header"]
        assert "***MASKED***" in result["header"]

    def test_non_sensitive_data_unchanged(self):
        event_dict = {"event": "order.created", "order_number": "ORD-20260101120000-A1B2C3"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["order_number"] == "ORD-20260101120000-A1B2C3"
        assert result["event"] == "order.created"

    def test_non_string_values_untouched(self):
        result = mask_sensitive_data(None, None, {"event": "x", "amount": 50000})
        assert result["amount"] == 50000
