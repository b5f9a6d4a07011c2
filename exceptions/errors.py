"""
Custom exception classes for the application.

Every error carries a stable code and an HTTP status so routes can
return them verbatim. Validation and capacity errors are never clamped
or corrected on the way out.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "RFQ_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with current state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# ALLOCATION ERRORS
# ===================

class CapacityExceededError(ConflictError):
    """
    Allocation would exceed the RFQ requirement or a quote's offer.

    Raised before anything is written. Not retryable: the caller must
    change the proposed allocation.
    """

    def __init__(
        self,
        message: str,
        scope: str,
        limit: int,
        attempted: int,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CAPACITY_EXCEEDED",
            message=message,
            details={
                "scope": scope,
                "limit": limit,
                "attempted": attempted,
                **(details or {})
            }
        )


class AlreadyFinalizedError(ConflictError):
    """Mutation attempted against a closed RFQ. Terminal, do not retry."""

    def __init__(self, rfq_id: str, operation: str):
        super().__init__(
            code="RFQ_ALREADY_FINALIZED",
            message="RFQ has already been finalized",
            details={"rfq_id": rfq_id, "operation": operation}
        )


class RFQBusyError(ConflictError):
    """Per-RFQ lock could not be acquired in time."""

    def __init__(self, rfq_id: str, timeout_seconds: float):
        super().__init__(
            code="RFQ_BUSY",
            message="Another operation on this RFQ is in progress, retry shortly",
            details={"rfq_id": rfq_id, "timeout_seconds": timeout_seconds}
        )


# ===================
# UPSTREAM ERRORS
# ===================

class UpstreamUnavailableError(ExternalServiceError):
    """
    FX rate source or persistence unreachable.

    The only error class eligible for caller-initiated retry with backoff.
    """

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            service=service,
            message=message,
            details={"retryable": True, **(details or {})}
        )


class FxRateUnavailableError(UpstreamUnavailableError):
    """No foreign exchange rate available to price a quote."""

    def __init__(self, message: str = "Foreign exchange rate is unavailable", details: Optional[dict] = None):
        super().__init__(
            service="fx_rate",
            message=message,
            details=details
        )


class DatabaseError(UpstreamUnavailableError):
    """Persistence unreachable or a Supabase operation failed (503)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            service="database",
            message=f"Database {operation} failed: {message}",
            details={"operation": operation, **(details or {})}
        )


# ===================
# RFQ ERRORS
# ===================

class RFQNotFoundError(NotFoundError):
    """RFQ not found."""

    def __init__(self, rfq_id: str):
        super().__init__(
            resource="RFQ",
            identifier=rfq_id,
            code="RFQ_NOT_FOUND"
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid RFQ status transition."""

    def __init__(self, current_status: str, new_status: str, terminal_status: str = "closed"):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
                "reason": f"Status can only move forward one step, and {terminal_status} is terminal"
            }
        )


# ===================
# QUOTE ERRORS
# ===================

class QuoteNotFoundError(NotFoundError):
    """Quote not found."""

    def __init__(self, quote_id: str):
        super().__init__(
            resource="Quote",
            identifier=quote_id,
            code="QUOTE_NOT_FOUND"
        )


class VendorNotInvitedError(AppError):
    """Vendor is not on the RFQ's invited vendor list (403)."""

    def __init__(self, rfq_id: str, vendor_name: str):
        super().__init__(
            code="VENDOR_NOT_INVITED",
            message="Vendor not selected for this RFQ",
            status_code=403,
            details={"rfq_id": rfq_id, "vendor_name": vendor_name}
        )


# ===================
# NOTIFICATION ERRORS
# ===================

class TelegramError(AppError):
    """Telegram API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="TELEGRAM_ERROR",
            message=message,
            status_code=500,
            details=details
        )
