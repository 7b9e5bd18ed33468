"""
Session request model.

A request is a student's proposal to a tutor. It starts ``pending`` and
takes exactly one terminal transition: accepted (a session is created and
linked), declined (reason required) or cancelled (by the student). A pending
request past ``expires_at`` is inert even if storage has not reaped it yet.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Numeric, String, Text
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base
from ..domain.time_range import TimeRange


class SessionRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


TERMINAL_REQUEST_STATUSES: FrozenSet[str] = frozenset(
    {
        SessionRequestStatus.ACCEPTED.value,
        SessionRequestStatus.DECLINED.value,
        SessionRequestStatus.CANCELLED.value,
    }
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


class SessionRequest(Base):
    """Proposal from a student to a tutor, prior to a firm booking."""

    __tablename__ = "session_requests"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(64), nullable=False, index=True)
    tutor_id = Column(String(64), nullable=False, index=True)

    subject = Column(String(100), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    requested_start_time = Column(DateTime(timezone=True), nullable=False)
    requested_end_time = Column(DateTime(timezone=True), nullable=False)
    mode = Column(String(20), nullable=False, default="online")
    location = Column(Text, nullable=True)
    proposed_price = Column(Numeric(10, 2), nullable=False)
    message = Column(Text, nullable=True)

    status = Column(
        String(20), nullable=False, default=SessionRequestStatus.PENDING.value, index=True
    )
    tutor_response = Column(Text, nullable=True)
    decline_reason = Column(Text, nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    session_id = Column(String(26), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'cancelled')",
            name="ck_session_requests_status",
        ),
        CheckConstraint("proposed_price > 0", name="ck_session_requests_price_positive"),
        CheckConstraint(
            "requested_start_time < requested_end_time", name="ck_session_requests_time_order"
        ),
        # Accepted requests always carry their session, and only they do
        CheckConstraint(
            "(status = 'accepted') = (session_id IS NOT NULL)",
            name="ck_session_requests_session_link",
        ),
        Index("ix_session_requests_student_tutor_status", "student_id", "tutor_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<SessionRequest(id={self.id}, status={self.status})>"

    @property
    def requested_range(self) -> TimeRange:
        return TimeRange(start=self.requested_start_time, end=self.requested_end_time)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        current = ensure_utc(now) if now else datetime.now(timezone.utc)
        return ensure_utc(self.expires_at) <= current

    @property
    def is_pending(self) -> bool:
        return self.status == SessionRequestStatus.PENDING.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "tutorId": self.tutor_id,
            "subject": self.subject,
            "title": self.title,
            "description": self.description,
            "requestedStartTime": _iso(self.requested_start_time),
            "requestedEndTime": _iso(self.requested_end_time),
            "mode": self.mode,
            "location": self.location,
            "proposedPrice": float(self.proposed_price) if self.proposed_price is not None else None,
            "message": self.message,
            "status": self.status,
            "tutorResponse": self.tutor_response,
            "declineReason": self.decline_reason,
            "respondedAt": _iso(self.responded_at),
            "expiresAt": _iso(self.expires_at),
            "sessionId": self.session_id,
            "createdAt": _iso(self.created_at),
        }
