"""Shared test data builders."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from studysphere.models.payment import Payment, PaymentStatus
from studysphere.models.session_request import SessionRequest, SessionRequestStatus
from studysphere.models.tutoring_session import SessionStatus, TutoringSession

TUTOR_ID = "tutor-user-1"
OTHER_TUTOR_ID = "tutor-user-2"
STUDENT_ID = "student-user-1"
OTHER_STUDENT_ID = "student-user-2"


def future_slot(days: int = 2, hour: int = 10, hours: float = 1.0) -> tuple[datetime, datetime]:
    """A whole-hour UTC range ``days`` from today."""
    base = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    start = (base + timedelta(days=days)).replace(hour=hour)
    return start, start + timedelta(hours=hours)


def create_session(
    db: Session,
    *,
    tutor_id: str = TUTOR_ID,
    student_id: str = STUDENT_ID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    status: str = SessionStatus.SCHEDULED.value,
    price: str = "40.00",
    **overrides: Any,
) -> TutoringSession:
    if start is None or end is None:
        start, end = future_slot()
    values: dict[str, Any] = dict(
        tutor_id=tutor_id,
        student_id=student_id,
        title="Algebra basics",
        subject="Mathematics",
        start_time=start,
        end_time=end,
        status=status,
        mode="online",
        price=Decimal(price),
        payment_status="pending",
    )
    values.update(overrides)
    session = TutoringSession(**values)
    db.add(session)
    db.commit()
    return session


def create_request(
    db: Session,
    *,
    tutor_id: str = TUTOR_ID,
    student_id: str = STUDENT_ID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    **overrides: Any,
) -> SessionRequest:
    if start is None or end is None:
        start, end = future_slot()
    values: dict[str, Any] = dict(
        student_id=student_id,
        tutor_id=tutor_id,
        subject="Physics",
        title="Kinematics",
        requested_start_time=start,
        requested_end_time=end,
        mode="online",
        proposed_price=Decimal("35.00"),
        status=SessionRequestStatus.PENDING.value,
        expires_at=expires_at or datetime.now(timezone.utc) + timedelta(hours=48),
    )
    values.update(overrides)
    request = SessionRequest(**values)
    db.add(request)
    db.commit()
    return request


def create_payment(
    db: Session,
    session: TutoringSession,
    *,
    status: str = PaymentStatus.AUTHORIZED.value,
    mode: str = "development",
    **overrides: Any,
) -> Payment:
    values: dict[str, Any] = dict(
        session_id=session.id,
        payer_id=session.student_id,
        payee_id=session.tutor_id,
        amount=Decimal(session.price),
        currency="INR",
        platform_fee=Decimal("0.00"),
        tutor_amount=Decimal(session.price),
        status=status,
        mode=mode,
        gateway_order_id="order_test_1",
        gateway_payment_id="pay_test_1",
    )
    values.update(overrides)
    payment = Payment(**values)
    db.add(payment)
    session.payment_status = status
    db.commit()
    return payment
