"""
Tutoring session model for the StudySphere platform.

A session is a confirmed booking between one tutor and one student. Its
status moves through a small state machine:

    scheduled -> rescheduled | pending_completion | cancelled
    rescheduled -> pending_completion | cancelled
    pending_completion -> completed | scheduled (completion rejected) | cancelled

``completed`` and ``cancelled`` are terminal. The price is snapshotted at
creation and never recomputed.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base
from ..domain.time_range import TimeRange

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    PENDING_COMPLETION = "pending_completion"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


# Sessions in these statuses block overlapping bookings
ACTIVE_SESSION_STATUSES: FrozenSet[str] = frozenset(
    {SessionStatus.SCHEDULED.value, SessionStatus.RESCHEDULED.value}
)
TERMINAL_SESSION_STATUSES: FrozenSet[str] = frozenset(
    {SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value}
)

SESSION_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    SessionStatus.SCHEDULED.value: frozenset(
        {
            SessionStatus.RESCHEDULED.value,
            SessionStatus.PENDING_COMPLETION.value,
            SessionStatus.CANCELLED.value,
        }
    ),
    SessionStatus.RESCHEDULED.value: frozenset(
        {SessionStatus.PENDING_COMPLETION.value, SessionStatus.CANCELLED.value}
    ),
    SessionStatus.PENDING_COMPLETION.value: frozenset(
        {
            SessionStatus.COMPLETED.value,
            SessionStatus.SCHEDULED.value,
            SessionStatus.CANCELLED.value,
        }
    ),
    SessionStatus.COMPLETED.value: frozenset(),
    SessionStatus.CANCELLED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in SESSION_TRANSITIONS.get(current, frozenset())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


class TutoringSession(Base):
    """Confirmed booking between a tutor and a student."""

    __tablename__ = "tutoring_sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Participants (user ids from the identity provider)
    tutor_id = Column(String(64), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    session_request_id = Column(String(26), nullable=True, unique=True)

    title = Column(String(200), nullable=False)
    subject = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(30), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)
    mode = Column(String(20), nullable=False, default=SessionMode.ONLINE.value)
    location = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String(20), nullable=False, default="pending")
    notes = Column(Text, nullable=True)

    # Review (student, write-once)
    rating = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation
    cancel_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(64), nullable=True)

    # Completion request
    completion_requested_at = Column(DateTime(timezone=True), nullable=True)
    completion_requested_by = Column(String(64), nullable=True)
    completion_request_notes = Column(Text, nullable=True)
    completion_responded_at = Column(DateTime(timezone=True), nullable=True)
    completion_responded_by = Column(String(64), nullable=True)
    completion_approved = Column(Boolean, nullable=True)
    completion_rejection_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completion_notes = Column(Text, nullable=True)

    # Reschedule
    reschedule_reason = Column(Text, nullable=True)
    rescheduled_at = Column(DateTime(timezone=True), nullable=True)

    # Meeting room
    room_id = Column(String(120), nullable=True)
    room_url = Column(String(500), nullable=True)
    room_active = Column(Boolean, nullable=False, default=False)
    room_started_at = Column(DateTime(timezone=True), nullable=True)
    room_started_by = Column(String(64), nullable=True)
    room_ended_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'rescheduled', 'pending_completion', 'completed', 'cancelled')",
            name="ck_tutoring_sessions_status",
        ),
        CheckConstraint("mode IN ('online', 'offline')", name="ck_tutoring_sessions_mode"),
        CheckConstraint("price > 0", name="ck_tutoring_sessions_price_positive"),
        CheckConstraint("start_time < end_time", name="ck_tutoring_sessions_time_order"),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_tutoring_sessions_rating"
        ),
        Index("ix_tutoring_sessions_tutor_status_start", "tutor_id", "status", "start_time"),
        Index("ix_tutoring_sessions_student_status_start", "student_id", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<TutoringSession(id={self.id}, tutor_id={self.tutor_id}, "
            f"student_id={self.student_id}, status={self.status})>"
        )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.tutor_id, self.student_id)

    # Transitions. Guards live in SessionService; these only apply the change.

    def cancel(self, cancelled_by: str, reason: Optional[str] = None) -> None:
        self.status = SessionStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancelled_by = cancelled_by
        self.cancel_reason = reason
        self.room_active = False
        logger.info(f"Session {self.id} cancelled by {cancelled_by}")

    def request_completion(self, requested_by: str, notes: Optional[str] = None) -> None:
        self.status = SessionStatus.PENDING_COMPLETION.value
        self.completion_requested_at = datetime.now(timezone.utc)
        self.completion_requested_by = requested_by
        self.completion_request_notes = notes
        self.completion_responded_at = None
        self.completion_responded_by = None
        self.completion_approved = None
        self.completion_rejection_reason = None
        logger.info(f"Completion requested for session {self.id} by {requested_by}")

    def approve_completion(self, approved_by: str) -> None:
        now = datetime.now(timezone.utc)
        self.status = SessionStatus.COMPLETED.value
        self.completed_at = now
        self.completion_notes = self.completion_request_notes
        self.completion_responded_at = now
        self.completion_responded_by = approved_by
        self.completion_approved = True
        self.room_active = False
        logger.info(f"Session {self.id} completed, approved by {approved_by}")

    def reject_completion(self, rejected_by: str, reason: Optional[str]) -> None:
        self.status = SessionStatus.SCHEDULED.value
        self.completion_responded_at = datetime.now(timezone.utc)
        self.completion_responded_by = rejected_by
        self.completion_approved = False
        self.completion_rejection_reason = reason
        logger.info(f"Completion of session {self.id} rejected by {rejected_by}")

    def reschedule(self, new_range: TimeRange, reason: str) -> None:
        self.start_time = new_range.start
        self.end_time = new_range.end
        self.status = SessionStatus.RESCHEDULED.value
        self.reschedule_reason = reason
        self.rescheduled_at = datetime.now(timezone.utc)
        logger.info(f"Session {self.id} rescheduled to {new_range.start.isoformat()}")

    def add_review(self, rating: int, review: Optional[str]) -> None:
        self.rating = rating
        self.review = review
        self.reviewed_at = datetime.now(timezone.utc)

    def completion_request_dict(self) -> Optional[Dict[str, Any]]:
        if self.completion_requested_at is None:
            return None
        return {
            "requestedAt": _iso(self.completion_requested_at),
            "requestedBy": self.completion_requested_by,
            "notes": self.completion_request_notes,
            "respondedAt": _iso(self.completion_responded_at),
            "respondedBy": self.completion_responded_by,
            "approved": self.completion_approved,
            "rejectionReason": self.completion_rejection_reason,
        }

    def meeting_room_dict(self) -> Optional[Dict[str, Any]]:
        if not self.room_id:
            return None
        return {
            "roomId": self.room_id,
            "roomUrl": self.room_url,
            "isActive": bool(self.room_active),
            "startedAt": _iso(self.room_started_at),
            "startedBy": self.room_started_by,
            "endedAt": _iso(self.room_ended_at),
        }

    def to_summary(self) -> Dict[str, Any]:
        """Short form used when reporting conflicts."""
        return {
            "id": self.id,
            "title": self.title,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "status": self.status,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "tutorId": self.tutor_id,
            "studentId": self.student_id,
            "sessionRequestId": self.session_request_id,
            "subject": self.subject,
            "description": self.description,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "status": self.status,
            "mode": self.mode,
            "location": self.location,
            "price": float(self.price) if self.price is not None else None,
            "paymentStatus": self.payment_status,
            "rating": self.rating,
            "review": self.review,
            "reviewedAt": _iso(self.reviewed_at),
            "notes": self.notes,
            "cancelReason": self.cancel_reason,
            "cancelledAt": _iso(self.cancelled_at),
            "cancelledBy": self.cancelled_by,
            "completionRequest": self.completion_request_dict(),
            "completedAt": _iso(self.completed_at),
            "completionNotes": self.completion_notes,
            "rescheduleReason": self.reschedule_reason,
            "rescheduledAt": _iso(self.rescheduled_at),
            "meetingRoom": self.meeting_room_dict(),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
