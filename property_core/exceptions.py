"""
Exception hierarchy with error codes, context, and correlation support.

Every error raised by the service layer derives from ``BaseError`` so callers
can map it to a response with ``error_code`` and ``status_code``. The five
business categories used across the services are produced by factories:

- ``not_found``           -> NOT_FOUND (404)
- ``duplicate``           -> DUPLICATE (409)
- ``invalid_state``       -> INVALID_STATE_TRANSITION (409)
- ``validation_failed``   -> VALIDATION_FAILED (400)
- ``permission_denied``   -> PERMISSION_DENIED (403)
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    FILE_TOO_LARGE = "2005"
    UNSUPPORTED_FILE_TYPE = "2006"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"

    # Business logic errors (4xxx)
    BUSINESS_RULE_VIOLATION = "4000"
    INVALID_STATE_TRANSITION = "4001"
    PERMISSION_DENIED = "4003"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    EMAIL_DELIVERY_ERROR = "5005"
    OCR_ERROR = "5006"
    STORAGE_ERROR = "5007"


_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DUPLICATE: 409,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INVALID_STATE_TRANSITION: 409,
    ErrorCode.BUSINESS_RULE_VIOLATION: 409,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.INVALID_FORMAT: 400,
    ErrorCode.MISSING_REQUIRED: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.UNSUPPORTED_FILE_TYPE: 400,
}


def status_for_code(error_code: ErrorCode) -> int:
    """HTTP status associated with an error code (500 when unmapped)."""
    return _STATUS_BY_CODE.get(error_code, 500)


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()
        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Lazy import, the logger module imports config which imports this module
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "timestamp": self.timestamp,
        }
        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code.value}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause information (useful for debugging)
            include_traceback: Include full traceback (only in debug mode)
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "status": self.status_code,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
            if include_traceback:
                result["error"]["cause"]["traceback"] = self.context["cause"]["traceback"]

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """Add additional context to the error (fluent interface)."""
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


class RepositoryError(BaseError):
    """Persistence layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if status_code is None:
            status_code = status_for_code(error_code)
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors. The status code follows the error code."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, status_for_code(error_code), cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """External service integration errors (mail transport, OCR, storage)."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["service_name"] = service_name
        super().__init__(message, error_code, 502, cause, **context)


def _describe(prefix: str, identifiers: Dict[str, Any]) -> str:
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    if id_parts:
        return f"{prefix}: {', '.join(id_parts)}"
    return prefix


def not_found(
    resource_type: str,
    cause: Optional[Exception] = None,
    message: Optional[str] = None,
    **identifiers,
) -> RepositoryError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'Property', 'Lead')
        cause: Original exception if any
        message: Override for the generated message
        **identifiers: Resource identifiers (e.g., property_id='123')

    Returns:
        Configured RepositoryError instance with 404 status
    """
    return RepositoryError(
        message or _describe(f"{resource_type} not found", identifiers),
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(
    resource_type: str,
    cause: Optional[Exception] = None,
    message: Optional[str] = None,
    **identifiers,
) -> RepositoryError:
    """
    Factory for duplicate resource errors.

    Returns:
        Configured RepositoryError instance with 409 status
    """
    return RepositoryError(
        message or _describe(f"Duplicate {resource_type}", identifiers),
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def invalid_state(message: str, cause: Optional[Exception] = None, **context) -> ServiceError:
    """
    Factory for operations not permitted in the entity's current status.

    Returns:
        Configured ServiceError instance with 409 status
    """
    return ServiceError(
        message,
        error_code=ErrorCode.INVALID_STATE_TRANSITION,
        cause=cause,
        **context,
    )


def validation_failed(
    field: str,
    value: Any,
    reason: str,
    cause: Optional[Exception] = None,
    message: Optional[str] = None,
) -> ValidationError:
    """
    Factory for validation errors.

    Args:
        field: Field that failed validation
        value: The invalid value
        reason: Why validation failed
        cause: Original exception if any
        message: Override for the generated message
    """
    return ValidationError(
        message or f"Validation failed for {field}: {reason}",
        field=field,
        error_code=ErrorCode.VALIDATION_FAILED,
        cause=cause,
        value=str(value),
        reason=reason,
    )


def permission_denied(
    action: str,
    resource: str,
    cause: Optional[Exception] = None,
    message: Optional[str] = None,
    **context,
) -> BaseError:
    """Factory for permission denied errors (403)."""
    return BaseError(
        message or f"Permission denied: {action} on {resource}",
        error_code=ErrorCode.PERMISSION_DENIED,
        status_code=403,
        cause=cause,
        action=action,
        resource=resource,
        **context,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
