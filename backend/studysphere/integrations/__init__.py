"""External service integrations for the StudySphere platform."""

from .razorpay_client import (
    RazorpayClient,
    RazorpayError,
    verify_payment_signature,
    verify_webhook_signature,
)

__all__ = [
    "RazorpayClient",
    "RazorpayError",
    "verify_payment_signature",
    "verify_webhook_signature",
]
