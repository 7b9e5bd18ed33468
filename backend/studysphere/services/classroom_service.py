# backend/studysphere/services/classroom_service.py
"""
Classroom Service for StudySphere

Opens and closes the video meeting room of an online session. The tutor
starts the room (from a few minutes before the start until the end), both
participants join while it is active (until a grace period after the end),
and the tutor ends it. Room ids are stable once generated.
"""

from datetime import datetime, timedelta
import logging
import secrets
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.tutoring_session import ACTIVE_SESSION_STATUSES, SessionMode, TutoringSession
from ..principal import Actor
from ..repositories import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from .base import BaseService

logger = logging.getLogger(__name__)


def generate_room_id(session_id: str) -> str:
    return f"StudySphere{session_id}{secrets.token_hex(4)}"


class ClassroomService(BaseService):
    """Meeting room lifecycle for online sessions."""

    def __init__(self, db: Session, repository: Optional[SessionRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_session_repository(db)

    def _load(self, session_id: str) -> TutoringSession:
        session = self.repository.get_by_id(session_id)
        if not session:
            raise NotFoundException("Session not found")
        return session

    @staticmethod
    def _earliest_start(session: TutoringSession) -> datetime:
        return ensure_utc(session.start_time) - timedelta(
            minutes=settings.classroom_early_join_minutes
        )

    @staticmethod
    def _latest_join(session: TutoringSession) -> datetime:
        return ensure_utc(session.end_time) + timedelta(
            minutes=settings.classroom_join_grace_minutes
        )

    @BaseService.measure_operation("start_class")
    def start_class(self, actor: Actor, session_id: str) -> TutoringSession:
        """
        Open the meeting room.

        Raises:
            ForbiddenException: caller is not the session's tutor
            InvalidStateTransitionException: session is not scheduled or rescheduled
            ValidationException: not online, too early or already over
        """
        now = utc_now()
        with self.transaction():
            session = self._load(session_id)
            if session.tutor_id != actor.id:
                raise ForbiddenException("Only the assigned tutor can start this class")
            if session.status not in ACTIVE_SESSION_STATUSES:
                raise InvalidStateTransitionException(
                    f"Cannot start class. Session status is: {session.status}",
                    current_status=session.status,
                    required_status=ACTIVE_SESSION_STATUSES,
                )
            if session.mode != SessionMode.ONLINE.value:
                raise ValidationException("This is not an online session")

            earliest = self._earliest_start(session)
            if now < earliest:
                minutes_left = int((earliest - now).total_seconds() // 60) + 1
                raise ValidationException(
                    f"Class can be started {settings.classroom_early_join_minutes} minutes "
                    f"before the scheduled time. Please wait {minutes_left} more minutes.",
                    details={"minutesUntilStart": minutes_left},
                )
            if now > ensure_utc(session.end_time):
                raise ValidationException("Session time has already passed")

            if not session.room_id:
                session.room_id = generate_room_id(session.id)
            session.room_url = f"https://{settings.meeting_domain}/{session.room_id}"
            session.room_active = True
            session.room_started_at = now
            session.room_started_by = actor.id
            session.room_ended_at = None

        self.logger.info(f"Class started for session {session_id} in room {session.room_id}")
        return session

    @BaseService.measure_operation("join_class")
    def join_class(self, actor: Actor, session_id: str) -> Dict[str, Any]:
        session = self._load(session_id)
        if not session.is_participant(actor.id):
            raise ForbiddenException("You are not authorized to join this class")
        if session.mode != SessionMode.ONLINE.value:
            raise ValidationException("This is not an online session")

        is_tutor = session.tutor_id == actor.id
        if not session.room_active:
            if is_tutor:
                raise ValidationException("Please start the class first", details={"canStart": True})
            raise ValidationException(
                "The class has not been started yet. Please wait for the tutor to start the class.",
                details={"canStart": False},
            )
        if utc_now() > self._latest_join(session):
            raise ValidationException("Session time has ended")

        return {
            "roomId": session.room_id,
            "roomUrl": session.room_url,
            "role": "tutor" if is_tutor else "student",
            "isModerator": is_tutor,
            "session": {
                "id": session.id,
                "title": session.title,
                "startTime": ensure_utc(session.start_time).isoformat(),
                "endTime": ensure_utc(session.end_time).isoformat(),
            },
        }

    @BaseService.measure_operation("end_class")
    def end_class(self, actor: Actor, session_id: str) -> TutoringSession:
        with self.transaction():
            session = self._load(session_id)
            if session.tutor_id != actor.id:
                raise ForbiddenException("Only the tutor can end this class")
            session.room_active = False
            session.room_ended_at = utc_now()

        self.logger.info(f"Class ended for session {session_id}")
        return session

    def get_class_status(self, actor: Actor, session_id: str) -> Dict[str, Any]:
        session = self._load(session_id)
        if not session.is_participant(actor.id):
            raise ForbiddenException("You are not authorized to view this class")

        now = utc_now()
        is_tutor = session.tutor_id == actor.id
        earliest = self._earliest_start(session)
        can_start = can_join = False
        if session.room_active:
            class_status = "in-progress"
            can_join = now <= self._latest_join(session)
        elif now < earliest:
            class_status = "scheduled"
        elif now <= ensure_utc(session.end_time):
            class_status = "ready"
            can_start = is_tutor and session.status in ACTIVE_SESSION_STATUSES
        else:
            class_status = "ended"

        return {
            "sessionId": session.id,
            "title": session.title,
            "mode": session.mode,
            "status": session.status,
            "classStatus": class_status,
            "isActive": bool(session.room_active),
            "canStart": can_start,
            "canJoin": can_join,
            "isTutor": is_tutor,
            "startTime": ensure_utc(session.start_time).isoformat(),
            "endTime": ensure_utc(session.end_time).isoformat(),
            "meetingRoom": session.meeting_room_dict(),
        }
