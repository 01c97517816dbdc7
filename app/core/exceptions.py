"""
Custom Exception Hierarchy

Every error raised by the wash-session core carries a stable error code, an
HTTP status for the API layer and a details dict. Only
ConcurrentModificationError is meant to be retried, and only after the caller
re-reads the session.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"

    # Wash session errors (2xxx)
    WASH_SESSION_NOT_FOUND = "ERR_2001"
    INVALID_STATE_TRANSITION = "ERR_2002"
    PRECONDITION_FAILED = "ERR_2003"
    CONCURRENT_MODIFICATION = "ERR_2004"

    # Pricing errors (3xxx)
    PRICE_NOT_AVAILABLE = "ERR_3001"
    INVALID_DISCOUNT_SCHEDULE = "ERR_3002"

    # External service errors (5xxx)
    INVOICE_PROVIDER_ERROR = "ERR_5001"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"


class AppException(Exception):
    """Base exception for all application errors"""

    retryable = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "retryable": self.retryable,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input is malformed or references another tenant's data"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class WashSessionNotFoundError(NotFoundException):
    """Raised when a session does not exist in the caller's network"""

    def __init__(self, session_id: int):
        super().__init__(
            resource="Wash session",
            identifier=session_id,
            error_code=ErrorCode.WASH_SESSION_NOT_FOUND,
        )


class PriceNotAvailableError(ValidationException):
    """Raised when a service/vehicle combination has no active price"""

    def __init__(self, service_package_id: int, vehicle_type: str, location_id: int | None = None):
        super().__init__(
            message=(
                f"No active price for service package {service_package_id} "
                f"and vehicle type {vehicle_type}"
            ),
            error_code=ErrorCode.PRICE_NOT_AVAILABLE,
            details={
                "service_package_id": service_package_id,
                "vehicle_type": vehicle_type,
                "location_id": location_id,
            },
        )


class StateTransitionError(AppException):
    """Raised when an operation is attempted from a state outside its source set"""

    def __init__(
        self,
        session_id: int | None,
        current_state: str,
        action: str,
        allowed_actions: list[str] | None = None,
    ):
        super().__init__(
            message=f"Invalid transition: session in state {current_state} cannot {action}",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            status_code=409,
            details={
                "session_id": session_id,
                "current_state": current_state,
                "action": action,
                "allowed_actions": allowed_actions or [],
            }
        )


class PreconditionError(AppException):
    """Raised when an operation requires a state that is not met"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.PRECONDITION_FAILED,
            status_code=409,
            details=details
        )


class ConcurrentModificationError(AppException):
    """Raised when the session version changed between read and write"""

    retryable = True

    def __init__(self, session_id: int, expected_version: int, actual_version: int | None = None):
        super().__init__(
            message=(
                f"Wash session {session_id} was modified concurrently "
                f"(expected version {expected_version})"
            ),
            error_code=ErrorCode.CONCURRENT_MODIFICATION,
            status_code=409,
            details={
                "session_id": session_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )


class ExternalServiceException(AppException):
    """Base exception for external service errors"""

    def __init__(
        self,
        service_name: str,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=502,
            details=details
        )
        self.details["service"] = service_name


class InvoiceProviderError(ExternalServiceException):
    """Raised when the invoice provider call fails at transport level"""

    def __init__(self, provider_name: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            service_name=provider_name,
            message=f"Invoice provider error: {message}",
            error_code=ErrorCode.INVOICE_PROVIDER_ERROR,
            details=details
        )

    @classmethod
    def from_response(
        cls,
        provider_name: str,
        response: Any,
        *,
        max_response_chars: int = 500
    ) -> "InvoiceProviderError":
        """Build an error from an HTTP response, truncating the body"""
        status_code = getattr(response, "status_code", None)
        response_text = getattr(response, "text", "") or ""
        return cls(
            provider_name,
            message=f"remote rejected the request (status {status_code})",
            details={
                "status_code": status_code,
                "response_text": response_text[:max_response_chars],
            },
        )


class CircuitBreakerOpenError(ExternalServiceException):
    """Raised when circuit breaker is open"""

    def __init__(self, service_name: str, retry_after_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} is temporarily unavailable (circuit breaker open)",
            error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            details={"retry_after_seconds": retry_after_seconds}
        )
        self.status_code = 503
