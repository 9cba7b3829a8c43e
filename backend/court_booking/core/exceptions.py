"""
Domain exceptions for the booking engine.

Every fault carries a `kind` and a human-readable message so the API layer can
render it directly. One exception handler in `main.py` maps them to HTTP.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all booking-engine faults."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationException(DomainException):
    """Missing or malformed input, rejected before any side effect."""

    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class SlotUnavailableException(DomainException):
    """The requested window is gone: taken by another booking, blocked, or never offered."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class PaymentSetupRequiredException(DomainException):
    """A priced slot was requested but the organization cannot take payments."""

    kind = "payment_precondition"
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class PermissionDeniedException(DomainException):
    kind = "authorization"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateTransitionException(DomainException):
    """Terminal booking touched again, or a status value outside the enum."""

    kind = "state_invariant"
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentProviderException(DomainException):
    """The payment provider call failed. Never retried here."""

    kind = "payment_provider"
    status_code = status.HTTP_502_BAD_GATEWAY
