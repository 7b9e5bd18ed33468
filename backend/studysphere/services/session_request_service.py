# backend/studysphere/services/session_request_service.py
"""
Session Request Service for StudySphere

A student proposes a session to a tutor; the tutor accepts (which books the
session) or declines, or the student withdraws it. Each request takes
exactly one terminal transition, enforced by a compare-and-swap on the
``pending`` status. Pending requests past ``expires_at`` are inert.
"""

from datetime import timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    InvalidStateTransitionException,
    NotFoundException,
    SessionRequestExpiredException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..events.session_events import SessionRequestCreated, SessionRequestResponded
from ..models.session_request import SessionRequest, SessionRequestStatus
from ..models.tutoring_session import TutoringSession
from ..principal import Actor, Admin, Student, Tutor
from ..repositories import RepositoryFactory
from ..repositories.profile_repository import ProfileRepository
from ..repositories.session_request_repository import SessionRequestRepository
from ..schemas.session_request import SessionRequestCreate
from .base import BaseService
from .booking_service import BookingService, validate_location
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

ALREADY_RESPONDED = "This session request has already been responded to"


class SessionRequestService(BaseService):
    """Service layer for session requests."""

    def __init__(
        self,
        db: Session,
        repository: Optional[SessionRequestRepository] = None,
        profile_repository: Optional[ProfileRepository] = None,
        booking_service: Optional[BookingService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_session_request_repository(db)
        self.profile_repository = (
            profile_repository or RepositoryFactory.create_profile_repository(db)
        )
        self.notification_service = notification_service or NotificationService()
        self.booking_service = booking_service or BookingService(
            db,
            profile_repository=self.profile_repository,
            notification_service=self.notification_service,
        )

    # Creation

    @BaseService.measure_operation("create_request")
    def create_request(self, actor: Actor, data: SessionRequestCreate) -> SessionRequest:
        """
        Create a pending request from a student to a tutor.

        Raises:
            ForbiddenException: caller is not a student
            ValidationException: bad bounds, price or location, or a live duplicate
            NotFoundException: student profile or tutor missing
        """
        if not isinstance(actor, Student):
            raise ForbiddenException("Only students can send session requests")

        now = utc_now()
        requested = ConflictChecker.validate_time_range(
            data.requested_start_time, data.requested_end_time, now=now
        )
        if data.proposed_price is None or Decimal(data.proposed_price) <= 0:
            raise ValidationException("Proposed price must be greater than 0")
        location = validate_location(data.mode, data.location)

        with self.transaction():
            if not self.profile_repository.get_student_by_user_id(actor.id):
                raise NotFoundException("Student profile not found")
            if not self.profile_repository.get_tutor_by_user_id(data.tutor_id):
                raise NotFoundException("Tutor not found")

            window = timedelta(minutes=settings.duplicate_request_window_minutes)
            duplicate = self.repository.find_pending_duplicate(
                actor.id,
                data.tutor_id,
                requested.start - window,
                requested.start + window,
                now=now,
            )
            if duplicate:
                raise ValidationException(
                    "You already have a pending request with this tutor for a similar time",
                    code="DUPLICATE_REQUEST",
                    details={"existingRequestId": duplicate.id},
                )

            request = self.repository.create(
                student_id=actor.id,
                tutor_id=data.tutor_id,
                subject=data.subject,
                title=data.title,
                description=data.description,
                requested_start_time=requested.start,
                requested_end_time=requested.end,
                mode=data.mode,
                location=location,
                proposed_price=Decimal(data.proposed_price),
                message=data.message,
                status=SessionRequestStatus.PENDING.value,
                expires_at=now + timedelta(hours=settings.session_request_expiry_hours),
            )

        self.logger.info(f"Session request {request.id} sent by {actor.id} to {data.tutor_id}")
        self.notification_service.notify(
            SessionRequestCreated(
                request_id=request.id,
                student_id=request.student_id,
                tutor_id=request.tutor_id,
                requested_start_time=request.requested_start_time,
            ),
            [request.tutor_id],
        )
        return request

    # Responses

    def _load_request(self, request_id: str) -> SessionRequest:
        request = self.repository.get_by_id(request_id)
        if not request:
            raise NotFoundException("Session request not found")
        return request

    @staticmethod
    def _ensure_pending(request: SessionRequest, message: str = ALREADY_RESPONDED) -> None:
        if not request.is_pending:
            raise InvalidStateTransitionException(
                message,
                current_status=request.status,
                required_status={SessionRequestStatus.PENDING.value},
            )
        if request.is_expired(utc_now()):
            raise SessionRequestExpiredException(request.id)

    def _swap_from_pending(self, request: SessionRequest, message: str, **values: Any) -> None:
        if not self.repository.transition_from_pending(request.id, **values):
            self.db.refresh(request)
            raise InvalidStateTransitionException(
                message,
                current_status=request.status,
                required_status={SessionRequestStatus.PENDING.value},
            )

    @BaseService.measure_operation("accept_request")
    def accept_request(
        self, actor: Actor, request_id: str, tutor_response: Optional[str] = None
    ) -> Tuple[SessionRequest, TutoringSession]:
        """
        Accept a request and book its session.

        The session insert and the request update commit together; if the
        booking fails the request stays pending.

        Raises:
            ForbiddenException: caller is not the request's tutor
            InvalidStateTransitionException: request is no longer pending
            SessionRequestExpiredException: request expired
            ValidationException: requested start has already passed
            NotFoundException: student profile missing
            BookingConflictException: tutor or student busy, or a concurrent booking won
        """
        if not isinstance(actor, Tutor):
            raise ForbiddenException("Only tutors can respond to session requests")

        with self.transaction():
            request = self._load_request(request_id)
            if request.tutor_id != actor.id:
                raise ForbiddenException("You can only respond to your own session requests")
            self._ensure_pending(request)
            candidate = ConflictChecker.validate_time_range(
                request.requested_start_time, request.requested_end_time, now=utc_now()
            )
            if not self.profile_repository.get_student_by_user_id(request.student_id):
                raise NotFoundException("Student profile not found")

            session = self.booking_service.place_booking(
                tutor_id=request.tutor_id,
                student_id=request.student_id,
                candidate=candidate,
                acting_party="tutor",
                price=Decimal(request.proposed_price),
                title=request.title,
                subject=request.subject,
                description=request.description,
                mode=request.mode,
                location=request.location,
                session_request_id=request.id,
            )
            self._swap_from_pending(
                request,
                ALREADY_RESPONDED,
                status=SessionRequestStatus.ACCEPTED.value,
                session_id=session.id,
                tutor_response=tutor_response or "Request accepted",
                responded_at=utc_now(),
            )

        self.logger.info(f"Session request {request_id} accepted, session {session.id} created")
        self.booking_service.notify_created(session)
        self._notify_response(request, actor, session_id=session.id)
        return request, session

    @BaseService.measure_operation("decline_request")
    def decline_request(
        self,
        actor: Actor,
        request_id: str,
        decline_reason: Optional[str],
        tutor_response: Optional[str] = None,
    ) -> SessionRequest:
        if not isinstance(actor, Tutor):
            raise ForbiddenException("Only tutors can respond to session requests")
        if not decline_reason or not decline_reason.strip():
            raise ValidationException("Decline reason is required")

        with self.transaction():
            request = self._load_request(request_id)
            if request.tutor_id != actor.id:
                raise ForbiddenException("You can only respond to your own session requests")
            self._ensure_pending(request)
            self._swap_from_pending(
                request,
                ALREADY_RESPONDED,
                status=SessionRequestStatus.DECLINED.value,
                decline_reason=decline_reason.strip(),
                tutor_response=tutor_response,
                responded_at=utc_now(),
            )

        self.logger.info(f"Session request {request_id} declined by {actor.id}")
        self._notify_response(request, actor)
        return request

    @BaseService.measure_operation("cancel_request")
    def cancel_request(self, actor: Actor, request_id: str) -> SessionRequest:
        if not isinstance(actor, Student):
            raise ForbiddenException("You can only cancel your own session requests")

        message = "Only pending session requests can be cancelled"
        with self.transaction():
            request = self._load_request(request_id)
            if request.student_id != actor.id:
                raise ForbiddenException("You can only cancel your own session requests")
            self._ensure_pending(request, message)
            self._swap_from_pending(
                request,
                message,
                status=SessionRequestStatus.CANCELLED.value,
                responded_at=utc_now(),
            )

        self.logger.info(f"Session request {request_id} cancelled by {actor.id}")
        self._notify_response(request, actor)
        return request

    def _notify_response(
        self, request: SessionRequest, actor: Actor, session_id: Optional[str] = None
    ) -> None:
        self.notification_service.notify(
            SessionRequestResponded(
                request_id=request.id,
                status=request.status,
                responded_by=actor.id,
                session_id=session_id,
            ),
            [request.student_id, request.tutor_id],
        )

    # Reads

    @staticmethod
    def _party_filter(actor: Actor) -> Dict[str, Optional[str]]:
        match actor:
            case Student(id=user_id):
                return {"student_id": user_id, "tutor_id": None}
            case Tutor(id=user_id):
                return {"student_id": None, "tutor_id": user_id}
            case Admin():
                return {"student_id": None, "tutor_id": None}
        raise ForbiddenException("Unsupported role")

    def list_requests(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[SessionRequest], int]:
        """Sent requests for students, received requests for tutors."""
        status_filter = None if status in (None, "", "all") else status
        return self.repository.list_requests(
            **self._party_filter(actor),
            status=status_filter,
            skip=(page - 1) * limit,
            limit=limit,
        )

    def get_request(self, actor: Actor, request_id: str) -> SessionRequest:
        request = self._load_request(request_id)
        if isinstance(actor, Admin) or actor.id in (request.student_id, request.tutor_id):
            return request
        raise ForbiddenException("You don't have permission to view this session request")

    def get_stats(self, actor: Actor) -> Dict[str, int]:
        counts = self.repository.count_by_status(**self._party_filter(actor))
        stats = {status.value: counts.get(status.value, 0) for status in SessionRequestStatus}
        stats["total"] = sum(counts.values())
        return stats
