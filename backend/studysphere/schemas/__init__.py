"""Request and response schemas."""

from .base_responses import ErrorResponse, PaginationMeta, SuccessResponse, success_response
from .payment import CreateOrderRequest, RefundRequest, VerifyPaymentRequest
from .session import (
    AvailabilityCheck,
    CompletionReject,
    CompletionRequestBody,
    SessionCancel,
    SessionCreate,
    SessionNotesUpdate,
    SessionReschedule,
    SessionReview,
)
from .session_request import SessionRequestAccept, SessionRequestCreate, SessionRequestDecline

__all__ = [
    "AvailabilityCheck",
    "CompletionReject",
    "CompletionRequestBody",
    "CreateOrderRequest",
    "ErrorResponse",
    "PaginationMeta",
    "RefundRequest",
    "SessionCancel",
    "SessionCreate",
    "SessionNotesUpdate",
    "SessionRequestAccept",
    "SessionRequestCreate",
    "SessionRequestDecline",
    "SessionReschedule",
    "SessionReview",
    "SuccessResponse",
    "VerifyPaymentRequest",
    "success_response",
]
