"""
Unit tests for the exception system.

Tests the exception classes, factory functions, and correlation id handling.
"""

from unittest.mock import patch

import pytest

from property_core.exceptions import (
    BaseError,
    ErrorCode,
    ExternalServiceError,
    RepositoryError,
    ServiceError,
    ValidationError,
    clear_correlation_id,
    duplicate,
    get_correlation_id,
    invalid_state,
    not_found,
    permission_denied,
    set_correlation_id,
    status_for_code,
    validation_failed,
)


@pytest.fixture(autouse=True)
def no_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestBaseError:
    """Test BaseError class."""

    def test_basic_error_creation(self):
        error = BaseError("Test error message")

        assert error.message == "Test error message"
        assert error.error_code == ErrorCode.INTERNAL_ERROR
        assert error.status_code == 500
        assert error.cause is None
        assert error.context["error_id"] == error.error_id
        assert str(error) == "Test error message"

    def test_error_with_cause(self):
        original_error = ValueError("Original error")
        error = BaseError("Wrapped error", cause=original_error)

        assert error.cause is original_error
        assert error.context["cause"]["type"] == "ValueError"
        assert error.context["cause"]["message"] == "Original error"

    def test_picks_up_correlation_id(self):
        set_correlation_id("corr-123")

        error = BaseError("Correlated")

        assert error.context["correlation_id"] == "corr-123"
        assert error.to_dict()["error"]["correlation_id"] == "corr-123"

    def test_to_dict_hides_internal_context(self):
        error = BaseError(
            "Lookup failed",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
            cause=KeyError("k"),
            lead_id="lead-1",
        )

        payload = error.to_dict()["error"]
        assert payload["code"] == "3000"
        assert payload["status"] == 404
        assert payload["context"] == {"lead_id": "lead-1"}
        assert "cause" not in payload

        with_cause = error.to_dict(include_cause=True)["error"]["cause"]
        assert with_cause == {"type": "KeyError", "message": "'k'"}

    def test_add_context_is_fluent(self):
        error = BaseError("Error").add_context(unit_id="u-1")

        assert error.context["unit_id"] == "u-1"

    def test_error_chain(self):
        root = ValueError("root")
        middle = ServiceError("middle", cause=root)
        top = ServiceError("top", cause=middle)

        assert top.error_chain == [top, middle, root]

    @pytest.mark.parametrize(
        "status,method",
        [(500, "error"), (404, "warning"), (302, "info")],
    )
    def test_logs_by_status(self, status, method):
        with patch("property_core.utils.logger.get_logger") as get_logger:
            BaseError("Logged", status_code=status)

        getattr(get_logger.return_value, method).assert_called_once()


class TestErrorSubclasses:
    def test_repository_error_status_follows_code(self):
        assert RepositoryError("Gone", error_code=ErrorCode.NOT_FOUND).status_code == 404
        assert RepositoryError("Broken").status_code == 500

    def test_service_error_records_operation(self):
        error = ServiceError("Bad", error_code=ErrorCode.CONFLICT, operation="assign_manager")

        assert error.status_code == 409
        assert error.context["operation"] == "assign_manager"

    def test_validation_error_field(self):
        error = ValidationError("Too young", field="date_of_birth")

        assert error.status_code == 400
        assert error.context["field"] == "date_of_birth"

    def test_external_service_error(self):
        error = ExternalServiceError("SMTP down", service_name="smtp")

        assert error.status_code == 502
        assert error.context["service_name"] == "smtp"

    @pytest.mark.parametrize(
        "code,status",
        [
            (ErrorCode.DUPLICATE, 409),
            (ErrorCode.PERMISSION_DENIED, 403),
            (ErrorCode.FILE_TOO_LARGE, 400),
            (ErrorCode.OCR_ERROR, 500),
        ],
    )
    def test_status_for_code(self, code, status):
        assert status_for_code(code) == status


class TestFactories:
    def test_not_found(self):
        error = not_found("Property", property_id="p-1")

        assert isinstance(error, RepositoryError)
        assert error.message == "Property not found: property_id=p-1"
        assert error.error_code == ErrorCode.NOT_FOUND
        assert error.status_code == 404
        assert error.context["resource_type"] == "Property"
        assert error.context["property_id"] == "p-1"

    def test_not_found_custom_message(self):
        assert not_found("User", message="User not found").message == "User not found"

    def test_duplicate(self):
        error = duplicate("Lead", emirates_id="784-1990-7654321-2")

        assert error.error_code == ErrorCode.DUPLICATE
        assert error.status_code == 409
        assert error.message == "Duplicate Lead: emirates_id=784-1990-7654321-2"

    def test_invalid_state(self):
        error = invalid_state("Only draft quotations can be sent", status="SENT")

        assert isinstance(error, ServiceError)
        assert error.error_code == ErrorCode.INVALID_STATE_TRANSITION
        assert error.status_code == 409
        assert error.context["status"] == "SENT"

    def test_validation_failed(self):
        error = validation_failed("amount", -5, "must be positive")

        assert error.message == "Validation failed for amount: must be positive"
        assert error.context["value"] == "-5"
        assert error.context["reason"] == "must be positive"

    def test_permission_denied(self):
        error = permission_denied("create", "User", role="PROPERTY_MANAGER")

        assert error.status_code == 403
        assert error.error_code == ErrorCode.PERMISSION_DENIED
        assert error.message == "Permission denied: create on User"
        assert error.context["role"] == "PROPERTY_MANAGER"


class TestCorrelationId:
    def test_set_get_clear(self):
        assert get_correlation_id() is None

        set_correlation_id("abc")
        assert get_correlation_id() == "abc"

        clear_correlation_id()
        assert get_correlation_id() is None

    def test_clear_when_unset(self):
        clear_correlation_id()

        assert get_correlation_id() is None
