"""Tests for wa2fa exceptions and problem responses."""

from wa2fa.core.exceptions import (
    AttemptNotFoundError,
    ConfigurationError,
    MessageDeliveryError,
    MethodDisabledError,
    ValidationError,
    Wa2faError,
)


class TestExceptions:
    """Tests for exception types."""

    def test_base_error(self):
        error = Wa2faError("boom", recoverable=False, details={"a": 1})
        data = error.to_dict()
        assert data["error"] == "Wa2faError"
        assert data["message"] == "boom"
        assert data["recoverable"] is False
        assert data["details"] == {"a": 1}
        assert error.http_status == 500

    def test_type_uri_is_kebab_case(self):
        assert AttemptNotFoundError("x").error_type_uri == "urn:wa2fa:error:attempt-not-found"
        assert MethodDisabledError("qr").error_type_uri == "urn:wa2fa:error:method-disabled"

    def test_validation_error_field(self):
        error = ValidationError("bad phone", field="phone")
        assert error.http_status == 400
        assert error.details == {"field": "phone"}

    def test_http_statuses(self):
        assert AttemptNotFoundError("x").http_status == 404
        assert MethodDisabledError("otp").http_status == 409
        assert MessageDeliveryError(channel="sms", status_code=500).http_status == 502
        assert ConfigurationError().recoverable is False

    def test_delivery_error_details(self):
        error = MessageDeliveryError("failed", channel="whatsapp", status_code=400)
        assert error.details == {"channel": "whatsapp", "status_code": 400}
