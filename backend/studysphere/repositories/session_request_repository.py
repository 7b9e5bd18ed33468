"""Session Request Repository for StudySphere."""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.session_request import SessionRequest, SessionRequestStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionRequestRepository(BaseRepository[SessionRequest]):
    """Data access for session requests."""

    def __init__(self, db: Session):
        super().__init__(db, SessionRequest)

    def find_pending_duplicate(
        self,
        student_id: str,
        tutor_id: str,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
    ) -> Optional[SessionRequest]:
        """Live (unexpired) pending request from the same student to the same tutor in the window."""
        try:
            return (
                self.db.query(SessionRequest)
                .filter(
                    SessionRequest.student_id == student_id,
                    SessionRequest.tutor_id == tutor_id,
                    SessionRequest.status == SessionRequestStatus.PENDING.value,
                    SessionRequest.requested_start_time >= window_start,
                    SessionRequest.requested_start_time <= window_end,
                    SessionRequest.expires_at > now,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking duplicate session requests: {str(e)}")
            raise RepositoryException(f"Failed to check duplicate requests: {str(e)}")

    def list_requests(
        self,
        *,
        student_id: Optional[str] = None,
        tutor_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[SessionRequest], int]:
        query = self.party_query(tutor_id=tutor_id, student_id=student_id, status=status)
        return self.paginate(query, SessionRequest.created_at.desc(), skip, limit)

    def count_by_status(
        self, *, student_id: Optional[str] = None, tutor_id: Optional[str] = None
    ) -> Dict[str, int]:
        try:
            query = self.db.query(SessionRequest.status, func.count(SessionRequest.id))
            if student_id:
                query = query.filter(SessionRequest.student_id == student_id)
            if tutor_id:
                query = query.filter(SessionRequest.tutor_id == tutor_id)
            return {status: count for status, count in query.group_by(SessionRequest.status).all()}
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting session requests: {str(e)}")
            raise RepositoryException(f"Failed to count session requests: {str(e)}")

    def transition_from_pending(self, request_id: str, **values: Any) -> bool:
        """
        Move a request out of ``pending`` only if it is still pending.

        Returns False when another response already won.
        """
        try:
            result = self.db.execute(
                update(SessionRequest)
                .where(
                    SessionRequest.id == request_id,
                    SessionRequest.status == SessionRequestStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session="evaluate")
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating session request {request_id}: {str(e)}")
            raise RepositoryException(f"Failed to update session request: {str(e)}")
