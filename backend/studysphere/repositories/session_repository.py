"""Session Repository for StudySphere: listing, lookup and statistics."""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.tutoring_session import SessionStatus, TutoringSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionRepository(BaseRepository[TutoringSession]):
    """Data access for tutoring sessions."""

    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)

    def list_sessions(
        self,
        *,
        tutor_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[TutoringSession], int]:
        """
        List sessions for a party, newest start first.

        Returns:
            (page of sessions, total matching)
        """
        query = self.party_query(tutor_id=tutor_id, student_id=student_id, status=status)
        return self.paginate(query, TutoringSession.start_time.desc(), skip, limit)

    def get_statistics(
        self, *, tutor_id: Optional[str] = None, student_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Counts by status, price total and average rating for a party."""
        try:
            base = self.party_query(tutor_id=tutor_id, student_id=student_id)
            counts: Dict[str, int] = {
                status: count
                for status, count in base.with_entities(
                    TutoringSession.status, func.count(TutoringSession.id)
                )
                .group_by(TutoringSession.status)
                .all()
            }
            total_amount = (
                base.with_entities(func.coalesce(func.sum(TutoringSession.price), 0))
                .filter(
                    TutoringSession.status.in_(
                        [SessionStatus.COMPLETED.value, SessionStatus.SCHEDULED.value]
                    )
                )
                .scalar()
            )
            average_rating = (
                base.with_entities(func.avg(TutoringSession.rating))
                .filter(TutoringSession.rating.isnot(None))
                .scalar()
            )
            return {
                "counts": counts,
                "total_amount": Decimal(str(total_amount or 0)),
                "average_rating": float(average_rating) if average_rating is not None else None,
            }
        except SQLAlchemyError as e:
            self.logger.error(f"Error computing session statistics: {str(e)}")
            raise RepositoryException(f"Failed to compute statistics: {str(e)}")
