"""
ConflictChecker Repository for StudySphere

Fetches the sessions that can block a booking: those of a tutor or student
whose status is active (scheduled or rescheduled). The overlap test itself
is done by the ConflictChecker service on TimeRange values.
"""

from datetime import datetime
import logging
from typing import List, Literal, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.tutoring_session import ACTIVE_SESSION_STATUSES, TutoringSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

PartyRole = Literal["tutor", "student"]


class ConflictCheckerRepository(BaseRepository[TutoringSession]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)

    def get_active_sessions_for_party(
        self,
        party_id: str,
        role: PartyRole,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        """
        Get the active sessions of a tutor or student.

        Args:
            party_id: Tutor or student user id
            role: Which column ``party_id`` refers to
            exclude_session_id: Session to leave out (the one being rescheduled)

        Returns:
            Active sessions ordered by start time
        """
        try:
            column = TutoringSession.tutor_id if role == "tutor" else TutoringSession.student_id
            query = self.db.query(TutoringSession).filter(
                column == party_id,
                TutoringSession.status.in_(sorted(ACTIVE_SESSION_STATUSES)),
            )
            if exclude_session_id:
                query = query.filter(TutoringSession.id != exclude_session_id)

            return cast(List[TutoringSession], query.order_by(TutoringSession.start_time).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting sessions for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict sessions: {str(e)}")

    def get_active_tutor_sessions_between(
        self, tutor_id: str, window_start: datetime, window_end: datetime
    ) -> List[TutoringSession]:
        """Active tutor sessions that may touch a display window (used for slot listing)."""
        try:
            return cast(
                List[TutoringSession],
                self.db.query(TutoringSession)
                .filter(
                    TutoringSession.tutor_id == tutor_id,
                    TutoringSession.status.in_(sorted(ACTIVE_SESSION_STATUSES)),
                    TutoringSession.start_time < window_end,
                    TutoringSession.end_time > window_start,
                )
                .order_by(TutoringSession.start_time)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting sessions for window: {str(e)}")
            raise RepositoryException(f"Failed to get sessions: {str(e)}")
