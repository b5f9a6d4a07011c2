"""
Custom exceptions module.

Import from here rather than from exceptions.errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Allocation
    CapacityExceededError,
    AlreadyFinalizedError,
    RFQBusyError,

    # Upstream
    UpstreamUnavailableError,
    FxRateUnavailableError,

    # RFQs
    RFQNotFoundError,
    InvalidStatusTransitionError,

    # Quotes
    QuoteNotFoundError,
    VendorNotInvitedError,

    # Notifications
    TelegramError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Allocation
    "CapacityExceededError",
    "AlreadyFinalizedError",
    "RFQBusyError",

    # Upstream
    "UpstreamUnavailableError",
    "FxRateUnavailableError",

    # RFQs
    "RFQNotFoundError",
    "InvalidStatusTransitionError",

    # Quotes
    "QuoteNotFoundError",
    "VendorNotInvitedError",

    # Notifications
    "TelegramError",
]
