# backend/studysphere/services/booking_service.py
"""
Booking Service for StudySphere

Orchestrates the two booking entry points (direct booking and accepting a
session request) plus rescheduling:

1. Validate inputs (profiles, time bounds, offline location)
2. Check conflicts for both the tutor and the student
3. Price the session from the tutor's hourly rate
4. Persist the session
5. Compare-and-swap the tutor's booking version
6. Notify the participants (fire-and-forget)

Step 5 closes the check-then-act window: two bookings that both passed the
conflict check cannot both commit, the second one gets a conflict error.
A payment order is not opened here; the student opens it with a separate
call once the session exists.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core import metrics
from ..core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..domain.time_range import TimeRange
from ..events.session_events import SessionCreated
from ..models.profile import TutorProfile
from ..models.tutoring_session import SessionMode, SessionStatus, TutoringSession
from ..principal import Actor, Student
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import PartyRole
from ..repositories.profile_repository import ProfileRepository
from ..repositories.session_repository import SessionRepository
from ..schemas.session import SessionCreate
from .base import BaseService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .pricing_service import PricingService

logger = logging.getLogger(__name__)

OWN_CONFLICT_MESSAGE = "You have a conflicting session at this time"
COUNTERPARTY_CONFLICT_MESSAGE = "Time slot conflicts with an existing session"


def validate_location(mode: str, location: Optional[str]) -> Optional[str]:
    """Offline sessions need a meeting location; online sessions never keep one."""
    if mode == SessionMode.OFFLINE.value:
        if not location or not location.strip():
            raise ValidationException("Location is required for offline sessions")
        return location.strip()
    return None


class BookingService(BaseService):
    """
    Service layer for committing bookings.

    ``place_booking``, ``reserve_slot`` and ``confirm_slot`` run inside the
    caller's transaction so that request acceptance and rescheduling commit
    atomically with their own changes.
    """

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        profile_repository: Optional[ProfileRepository] = None,
        session_repository: Optional[SessionRepository] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.profile_repository = (
            profile_repository or RepositoryFactory.create_profile_repository(db)
        )
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.notification_service = notification_service or NotificationService()

    @BaseService.measure_operation("create_session")
    def create_session(self, actor: Actor, data: SessionCreate) -> TutoringSession:
        """
        Book a session directly with a tutor.

        Raises:
            ForbiddenException: caller is not a student
            ValidationException: bad time bounds or missing offline location
            NotFoundException: student profile or tutor missing
            BookingConflictException: tutor or student already busy
        """
        match actor:
            case Student(id=student_id):
                pass
            case _:
                raise ForbiddenException("Only students can book sessions")

        self.log_operation(
            "create_session",
            student_id=student_id,
            tutor_id=data.tutor_id,
            start_time=data.start_time.isoformat(),
        )

        candidate = ConflictChecker.validate_time_range(
            data.start_time, data.end_time, now=utc_now()
        )
        location = validate_location(data.mode, data.location)

        with self.transaction():
            if not self.profile_repository.get_student_by_user_id(student_id):
                raise NotFoundException("Student profile not found")
            tutor = self.get_tutor(data.tutor_id)
            price = PricingService.session_price(tutor.hourly_rate, candidate)

            session = self.place_booking(
                tutor_id=tutor.user_id,
                student_id=student_id,
                candidate=candidate,
                acting_party="student",
                price=price,
                title=data.title,
                subject=data.subject,
                description=data.description,
                mode=data.mode,
                location=location,
                notes=data.notes,
            )

        self.logger.info(
            f"Session {session.id} booked: tutor {session.tutor_id}, student {session.student_id}, "
            f"price {session.price}"
        )
        self.notify_created(session)
        return session

    def get_tutor(self, tutor_id: str) -> TutorProfile:
        tutor = self.profile_repository.get_tutor_by_user_id(tutor_id)
        if not tutor:
            raise NotFoundException("Tutor not found")
        return tutor

    def check_conflicts(
        self,
        tutor_id: str,
        student_id: str,
        candidate: TimeRange,
        *,
        acting_party: PartyRole,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """
        Raise if either party has an active session overlapping ``candidate``.

        The caller's own conflict reads "You have a conflicting session...",
        the counterparty's reads "Time slot conflicts with an existing session".
        """
        parties: List[tuple[PartyRole, str]] = [("tutor", tutor_id), ("student", student_id)]
        for role, party_id in parties:
            conflicts = self.conflict_checker.find_conflicts(
                party_id, role, candidate, exclude_session_id=exclude_session_id
            )
            if conflicts:
                metrics.BOOKING_CONFLICTS_TOTAL.labels(party=role).inc()
                message = (
                    OWN_CONFLICT_MESSAGE if role == acting_party else COUNTERPARTY_CONFLICT_MESSAGE
                )
                raise BookingConflictException(
                    message, conflicting_sessions=conflicts, details={"party": role}
                )

    def reserve_slot(
        self,
        tutor_id: str,
        student_id: str,
        candidate: TimeRange,
        *,
        acting_party: PartyRole,
        exclude_session_id: Optional[str] = None,
    ) -> int:
        """
        Read the tutor's booking version, then run the conflict checks.

        Returns:
            The version to pass to ``confirm_slot`` after the write
        """
        version = self.profile_repository.get_booking_version(tutor_id)
        if version is None:
            raise NotFoundException("Tutor not found")
        self.check_conflicts(
            tutor_id,
            student_id,
            candidate,
            acting_party=acting_party,
            exclude_session_id=exclude_session_id,
        )
        return version

    def confirm_slot(self, tutor_id: str, version: int) -> None:
        """
        Compare-and-swap the tutor's booking version.

        Raises:
            BookingConflictException: another booking for the tutor committed first
        """
        if not self.profile_repository.bump_booking_version(tutor_id, version):
            metrics.BOOKING_RACE_LOSSES_TOTAL.inc()
            self.logger.warning(
                f"Concurrent booking detected for tutor {tutor_id} at version {version}"
            )
            raise BookingConflictException(details={"reason": "concurrent_booking"})

    def place_booking(
        self,
        *,
        tutor_id: str,
        student_id: str,
        candidate: TimeRange,
        acting_party: PartyRole,
        price: Decimal,
        title: str,
        subject: str,
        description: Optional[str] = None,
        mode: str = SessionMode.ONLINE.value,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        session_request_id: Optional[str] = None,
    ) -> TutoringSession:
        """Create a scheduled session. Must be called inside a transaction."""
        version = self.reserve_slot(tutor_id, student_id, candidate, acting_party=acting_party)
        session = self.session_repository.create(
            tutor_id=tutor_id,
            student_id=student_id,
            session_request_id=session_request_id,
            title=title,
            subject=subject,
            description=description,
            start_time=candidate.start,
            end_time=candidate.end,
            status=SessionStatus.SCHEDULED.value,
            mode=mode,
            location=location,
            price=price,
            payment_status="pending",
            notes=notes,
        )
        self.confirm_slot(tutor_id, version)
        return session

    def check_availability(
        self, tutor_id: str, start_time: datetime, end_time: datetime
    ) -> Dict[str, Any]:
        """Tutor-side availability for a proposed range (no student check)."""
        candidate = ConflictChecker.validate_time_range(start_time, end_time, now=utc_now())
        self.get_tutor(tutor_id)
        conflicts = self.conflict_checker.find_conflicts(tutor_id, "tutor", candidate)
        return {"available": not conflicts, "conflictingSessions": conflicts}

    def notify_created(self, session: TutoringSession) -> None:
        self.notification_service.notify(
            SessionCreated(
                session_id=session.id,
                tutor_id=session.tutor_id,
                student_id=session.student_id,
                start_time=session.start_time,
                end_time=session.end_time,
                session_request_id=session.session_request_id,
            ),
            [session.tutor_id, session.student_id],
        )
