"""
Payment ledger model.

Each row tracks one attempt to pay for a tutoring session through the
gateway (Razorpay). A session has at most one non-failed entry at a time;
a failed entry may be superseded by a retry, so history is kept.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    DEVELOPMENT = "development"


CAPTURABLE_STATUSES: FrozenSet[str] = frozenset({PaymentStatus.AUTHORIZED.value})
REFUNDABLE_STATUSES: FrozenSet[str] = frozenset(
    {PaymentStatus.AUTHORIZED.value, PaymentStatus.CAPTURED.value}
)
# No further mutation once an entry reaches one of these
FROZEN_STATUSES: FrozenSet[str] = frozenset(
    {PaymentStatus.FAILED.value, PaymentStatus.REFUNDED.value, PaymentStatus.CANCELLED.value}
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


class Payment(Base):
    """Payment for a single tutoring session."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    payer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payee_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    tutor_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True
    )
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="development")
    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Gateway correlation
    gateway_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    gateway_payment_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    gateway_signature: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    gateway_refund_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Refund
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    refund_initiated_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    refund_initiated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Error
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Timestamps per transition
    authorized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    captured_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'authorized', 'captured', 'completed', 'failed', 'refunded', 'cancelled')",
            name="ck_payments_status",
        ),
        CheckConstraint("mode IN ('development', 'test', 'live')", name="ck_payments_mode"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        Index("ix_payments_session_created", "session_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Payment(session_id={self.session_id}, amount={self.amount}, status={self.status})>"

    def to_dict(self) -> Dict[str, Any]:
        refund: Optional[Dict[str, Any]] = None
        if self.refund_initiated_at is not None:
            refund = {
                "reason": self.refund_reason,
                "amount": float(self.refund_amount) if self.refund_amount is not None else None,
                "initiatedBy": self.refund_initiated_by,
                "initiatedAt": _iso(self.refund_initiated_at),
            }
        error: Optional[Dict[str, Any]] = None
        if self.error_message:
            error = {"message": self.error_message, "code": self.error_code}
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "payerId": self.payer_id,
            "payeeId": self.payee_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "platformFee": float(self.platform_fee),
            "tutorAmount": float(self.tutor_amount),
            "status": self.status,
            "mode": self.mode,
            "paymentMethod": self.payment_method,
            "gateway": {
                "orderId": self.gateway_order_id,
                "paymentId": self.gateway_payment_id,
                "refundId": self.gateway_refund_id,
            },
            "refund": refund,
            "error": error,
            "authorizedAt": _iso(self.authorized_at),
            "capturedAt": _iso(self.captured_at),
            "refundedAt": _iso(self.refunded_at),
            "failedAt": _iso(self.failed_at),
            "createdAt": _iso(self.created_at),
        }
