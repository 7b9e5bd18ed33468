# backend/studysphere/services/session_service.py
"""
Session Service for StudySphere

Drives a booked session through its lifecycle: cancellation, the two-party
completion round-trip, rescheduling and the student's review. Every
transition is guarded on the current status, so a repeated call (a second
approve, a second cancel) fails cleanly instead of moving money twice.

Payment side effects run after the session transition has committed:
- cancel refunds an authorized or captured payment, best effort
- approve-completion captures an authorized payment, best effort
Their outcome is reported as ``payment_refunded`` / ``payment_captured``.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    ForbiddenException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..events.session_events import (
    SessionCancelled,
    SessionCompleted,
    SessionCompletionRejected,
    SessionCompletionRequested,
    SessionRescheduled,
)
from ..models.tutoring_session import (
    SESSION_TRANSITIONS,
    TERMINAL_SESSION_STATUSES,
    SessionStatus,
    TutoringSession,
    can_transition,
)
from ..principal import Actor, Admin, Student, Tutor
from ..repositories import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..schemas.session import SessionCreate
from .base import BaseService
from .booking_service import BookingService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .payment_service import PaymentService

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    session: TutoringSession
    payment_refunded: bool


@dataclass
class CompletionResult:
    session: TutoringSession
    payment_captured: bool


class SessionService(BaseService):
    """Service layer for session lifecycle operations."""

    def __init__(
        self,
        db: Session,
        repository: Optional[SessionRepository] = None,
        booking_service: Optional[BookingService] = None,
        payment_service: Optional[PaymentService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_session_repository(db)
        self.notification_service = notification_service or NotificationService()
        self.booking_service = booking_service or BookingService(
            db,
            session_repository=self.repository,
            notification_service=self.notification_service,
        )
        self.payment_service = payment_service or PaymentService(
            db,
            session_repository=self.repository,
            notification_service=self.notification_service,
        )

    # Helpers

    def _load(self, session_id: str) -> TutoringSession:
        session = self.repository.get_by_id(session_id)
        if not session:
            raise NotFoundException("Session not found")
        return session

    @staticmethod
    def _guard(session: TutoringSession, target: SessionStatus, message: str) -> None:
        if session.status in TERMINAL_SESSION_STATUSES:
            message = f"Session is already {session.status}"
        if not can_transition(session.status, target.value):
            required = {
                status
                for status, targets in SESSION_TRANSITIONS.items()
                if target.value in targets
            }
            raise InvalidStateTransitionException(
                message, current_status=session.status, required_status=required
            )

    # Booking

    def create_session(self, actor: Actor, data: SessionCreate) -> TutoringSession:
        return self.booking_service.create_session(actor, data)

    def check_availability(
        self, tutor_id: str, start_time: datetime, end_time: datetime
    ) -> Dict[str, Any]:
        return self.booking_service.check_availability(tutor_id, start_time, end_time)

    def get_available_slots(self, tutor_id: str, target_date: date) -> List[Dict[str, Any]]:
        self.booking_service.get_tutor(tutor_id)
        return self.booking_service.conflict_checker.get_available_slots(
            tutor_id, target_date, now=utc_now()
        )

    # Reads

    def list_sessions(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[TutoringSession], int]:
        """Sessions the caller takes part in; admins see all."""
        status_filter = None if status in (None, "", "all") else status
        skip = (page - 1) * limit
        match actor:
            case Student(id=user_id):
                return self.repository.list_sessions(
                    student_id=user_id, status=status_filter, skip=skip, limit=limit
                )
            case Tutor(id=user_id):
                return self.repository.list_sessions(
                    tutor_id=user_id, status=status_filter, skip=skip, limit=limit
                )
            case Admin():
                return self.repository.list_sessions(status=status_filter, skip=skip, limit=limit)
        raise ForbiddenException("Unsupported role")

    def list_tutor_sessions(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[TutoringSession], int]:
        if not isinstance(actor, Tutor):
            raise ForbiddenException("Only tutors can view tutor sessions")
        return self.list_sessions(actor, status=status, page=page, limit=limit)

    def get_session(self, actor: Actor, session_id: str) -> TutoringSession:
        session = self._load(session_id)
        if isinstance(actor, Admin) or session.is_participant(actor.id):
            return session
        raise ForbiddenException("Access denied. You can only view your own sessions.")

    def get_stats(self, actor: Actor) -> Dict[str, Any]:
        match actor:
            case Student(id=user_id):
                raw = self.repository.get_statistics(student_id=user_id)
            case Tutor(id=user_id):
                raw = self.repository.get_statistics(tutor_id=user_id)
            case _:
                raw = self.repository.get_statistics()

        counts = raw["counts"]
        stats: Dict[str, Any] = {
            "total": sum(counts.values()),
            "scheduled": counts.get(SessionStatus.SCHEDULED.value, 0),
            "rescheduled": counts.get(SessionStatus.RESCHEDULED.value, 0),
            "pendingCompletion": counts.get(SessionStatus.PENDING_COMPLETION.value, 0),
            "completed": counts.get(SessionStatus.COMPLETED.value, 0),
            "cancelled": counts.get(SessionStatus.CANCELLED.value, 0),
            "totalAmount": float(raw["total_amount"]),
        }
        if isinstance(actor, Tutor):
            average = raw["average_rating"]
            stats["averageRating"] = round(average, 1) if average is not None else 0
        return stats

    # Transitions

    @BaseService.measure_operation("cancel_session")
    def cancel_session(
        self, actor: Actor, session_id: str, reason: Optional[str] = None
    ) -> CancellationResult:
        """
        Cancel a session and refund its payment, best effort.

        The cancellation commits first; a refund failure is logged and
        reported as ``payment_refunded=False``.
        """
        with self.transaction():
            session = self._load(session_id)
            if not session.is_participant(actor.id):
                raise ForbiddenException("You don't have permission to cancel this session")
            self._guard(session, SessionStatus.CANCELLED, "Session cannot be cancelled")
            session.cancel(actor.id, reason)

        payment_refunded = False
        try:
            payment_refunded = self.payment_service.refund_if_paid(
                session_id,
                reason=reason or f"Session cancelled by {actor.role}",
                initiated_by=actor.id,
            )
        except Exception as e:
            self.logger.error(f"Refund failed for cancelled session {session_id}: {str(e)}")

        self.notification_service.notify(
            SessionCancelled(
                session_id=session.id,
                cancelled_by=actor.id,
                cancelled_at=session.cancelled_at,
                payment_refunded=payment_refunded,
            ),
            [session.tutor_id, session.student_id],
        )
        return CancellationResult(session=session, payment_refunded=payment_refunded)

    @BaseService.measure_operation("request_completion")
    def request_completion(
        self, actor: Actor, session_id: str, notes: Optional[str] = None
    ) -> TutoringSession:
        with self.transaction():
            session = self._load(session_id)
            if not isinstance(actor, Tutor) or session.tutor_id != actor.id:
                raise ForbiddenException("Only the assigned tutor can complete this session")
            self._guard(
                session,
                SessionStatus.PENDING_COMPLETION,
                f"Cannot request completion for a session that is {session.status}",
            )
            session.request_completion(actor.id, notes)

        self.notification_service.notify(
            SessionCompletionRequested(
                session_id=session.id,
                requested_by=actor.id,
                requested_at=session.completion_requested_at,
            ),
            [session.student_id],
        )
        return session

    def _load_for_completion_response(self, actor: Actor, session_id: str) -> TutoringSession:
        session = self._load(session_id)
        if not isinstance(actor, Student) or session.student_id != actor.id:
            raise ForbiddenException("Only the student can respond to this completion request")
        if session.status != SessionStatus.PENDING_COMPLETION.value:
            message = (
                f"Session is already {session.status}"
                if session.status in TERMINAL_SESSION_STATUSES
                else "Session is not awaiting completion approval"
            )
            raise InvalidStateTransitionException(
                message,
                current_status=session.status,
                required_status={SessionStatus.PENDING_COMPLETION.value},
            )
        return session

    @BaseService.measure_operation("approve_completion")
    def approve_completion(self, actor: Actor, session_id: str) -> CompletionResult:
        """
        Student confirms the session took place; captures an authorized payment.

        Capture failure is logged and reported as ``payment_captured=False``;
        the payment stays authorized for a manual retry.
        """
        with self.transaction():
            session = self._load_for_completion_response(actor, session_id)
            session.approve_completion(actor.id)

        payment_captured = False
        try:
            payment_captured = self.payment_service.capture_if_authorized(session_id)
        except Exception as e:
            self.logger.error(f"Capture failed for completed session {session_id}: {str(e)}")

        self.notification_service.notify(
            SessionCompleted(
                session_id=session.id,
                completed_at=session.completed_at,
                payment_captured=payment_captured,
            ),
            [session.tutor_id, session.student_id],
        )
        return CompletionResult(session=session, payment_captured=payment_captured)

    @BaseService.measure_operation("reject_completion")
    def reject_completion(
        self, actor: Actor, session_id: str, reason: Optional[str] = None
    ) -> TutoringSession:
        with self.transaction():
            session = self._load_for_completion_response(actor, session_id)
            session.reject_completion(actor.id, reason)

        self.notification_service.notify(
            SessionCompletionRejected(session_id=session.id, rejected_by=actor.id, reason=reason),
            [session.tutor_id],
        )
        return session

    @BaseService.measure_operation("reschedule_session")
    def reschedule_session(
        self,
        actor: Actor,
        session_id: str,
        new_start_time: datetime,
        new_end_time: datetime,
        reason: Optional[str] = None,
    ) -> TutoringSession:
        """
        Move a scheduled session to a new range.

        Raises:
            InvalidStateTransitionException: session is not scheduled
            ValidationException: bad time bounds
            BookingConflictException: new range overlaps another active session
        """
        candidate = ConflictChecker.validate_time_range(
            new_start_time, new_end_time, now=utc_now()
        )

        with self.transaction():
            session = self._load(session_id)
            if not session.is_participant(actor.id):
                raise ForbiddenException("You don't have permission to reschedule this session")
            if session.status != SessionStatus.SCHEDULED.value:
                raise InvalidStateTransitionException(
                    "Only scheduled sessions can be rescheduled",
                    current_status=session.status,
                    required_status={SessionStatus.SCHEDULED.value},
                )

            acting_party = "tutor" if actor.id == session.tutor_id else "student"
            version = self.booking_service.reserve_slot(
                session.tutor_id,
                session.student_id,
                candidate,
                acting_party=acting_party,
                exclude_session_id=session.id,
            )
            session.reschedule(candidate, reason or f"Rescheduled by {actor.role}")
            self.booking_service.confirm_slot(session.tutor_id, version)

        self.notification_service.notify(
            SessionRescheduled(
                session_id=session.id,
                rescheduled_by=actor.id,
                start_time=session.start_time,
                end_time=session.end_time,
                reason=session.reschedule_reason,
            ),
            [session.tutor_id, session.student_id],
        )
        return session

    @BaseService.measure_operation("review_session")
    def review_session(
        self, actor: Actor, session_id: str, rating: int, review: Optional[str] = None
    ) -> TutoringSession:
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ValidationException("Rating must be between 1 and 5")

        with self.transaction():
            session = self._load(session_id)
            if not isinstance(actor, Student) or session.student_id != actor.id:
                raise ForbiddenException("Only the student can review this session")
            if session.status != SessionStatus.COMPLETED.value:
                raise InvalidStateTransitionException(
                    "Can only review completed sessions",
                    current_status=session.status,
                    required_status={SessionStatus.COMPLETED.value},
                )
            if session.rating is not None:
                raise ValidationException("Session has already been reviewed")
            session.add_review(rating, review)

        self.logger.info(f"Session {session_id} reviewed with rating {rating}")
        return session

    def update_notes(self, actor: Actor, session_id: str, notes: Optional[str]) -> TutoringSession:
        with self.transaction():
            session = self._load(session_id)
            if not session.is_participant(actor.id):
                raise ForbiddenException("You don't have permission to update this session")
            session.notes = notes
        return session

