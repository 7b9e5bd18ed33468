"""Payment request bodies."""

from decimal import Decimal
from typing import Optional

from pydantic import Field

from ._strict_base import StrictRequestModel


class CreateOrderRequest(StrictRequestModel):
    session_id: str = Field(..., min_length=1)


class VerifyPaymentRequest(StrictRequestModel):
    payment_id: str = Field(..., min_length=1, description="Ledger entry id")
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class RefundRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)
    amount: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
