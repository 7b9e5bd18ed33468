# backend/studysphere/core/exceptions.py
"""
Domain-specific exceptions for the StudySphere platform.

These exceptions carry business-focused messages that are raised close to
the guard that detects them and converted to HTTP responses at the API layer.
"""

from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        # Infrastructure failures never echo internals to the caller
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "An error occurred processing your request",
                "code": self.code,
                "details": {},
            },
        )


class InvalidStateTransitionException(DomainException):
    """Raised when a transition is attempted from a status that does not allow it."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        current_status: str,
        required_status: Optional[Iterable[str]] = None,
    ) -> None:
        details: Dict[str, Any] = {"currentStatus": current_status}
        if required_status is not None:
            details["requiredStatus"] = sorted(required_status)
        super().__init__(message=message, code="INVALID_STATE", details=details)


# Booking


class BookingConflictException(ConflictException):
    """Raised when a booking overlaps an active session of the tutor or student."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicting_sessions: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged: Dict[str, Any] = dict(details or {})
        merged["conflictingSessions"] = conflicting_sessions or []
        super().__init__(
            message=message or "Time slot conflicts with an existing session",
            code="BOOKING_CONFLICT",
            details=merged,
        )

    @property
    def conflicting_sessions(self) -> List[Dict[str, Any]]:
        return list(self.details.get("conflictingSessions", []))


class SessionRequestExpiredException(ValidationException):
    """Raised when a pending session request is past its expiry."""

    def __init__(self, request_id: str):
        super().__init__(
            message="This session request has expired",
            code="SESSION_REQUEST_EXPIRED",
            details={"requestId": request_id},
        )


# Payments


class PaymentException(DomainException):
    """Raised when a payment operation is rejected."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidSignatureException(PaymentException):
    """Raised when a gateway signature does not match."""

    def __init__(self, message: str = "Payment verification failed: Invalid signature"):
        super().__init__(message=message, code="INVALID_SIGNATURE")


class PaymentGatewayException(PaymentException):
    """Raised when the payment gateway fails or times out."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        gateway_code: Optional[str] = None,
        timed_out: bool = False,
    ):
        details: Dict[str, Any] = {"timedOut": timed_out}
        if gateway_code:
            details["gatewayCode"] = gateway_code
        if timed_out:
            details["retry"] = "The payment gateway did not respond in time. Please retry manually."
        super().__init__(message=message, code="PAYMENT_GATEWAY_ERROR", details=details)


class NotificationException(DomainException):
    """Raised by message transports; always caught by the caller."""


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations.
    """
