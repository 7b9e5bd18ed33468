"""Tutor and student profile lookups plus the per-tutor booking version."""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.profile import StudentProfile, TutorProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProfileRepository(BaseRepository[TutorProfile]):
    """Profile data access keyed by the identity provider's user id."""

    def __init__(self, db: Session):
        super().__init__(db, TutorProfile)

    def get_tutor_by_user_id(self, user_id: str) -> Optional[TutorProfile]:
        try:
            return self.db.query(TutorProfile).filter(TutorProfile.user_id == user_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting tutor profile for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get tutor profile: {str(e)}")

    def get_student_by_user_id(self, user_id: str) -> Optional[StudentProfile]:
        try:
            return self.db.query(StudentProfile).filter(StudentProfile.user_id == user_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting student profile for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get student profile: {str(e)}")

    def get_booking_version(self, tutor_user_id: str) -> Optional[int]:
        """Read the current booking version straight from the database."""
        try:
            return self.db.execute(
                select(TutorProfile.booking_version).where(TutorProfile.user_id == tutor_user_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading booking version for {tutor_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to read booking version: {str(e)}")

    def bump_booking_version(self, tutor_user_id: str, expected_version: int) -> bool:
        """
        Compare-and-swap the tutor's booking version.

        Returns False when another booking for this tutor was written after
        ``expected_version`` was read.
        """
        try:
            result = self.db.execute(
                update(TutorProfile)
                .where(
                    TutorProfile.user_id == tutor_user_id,
                    TutorProfile.booking_version == expected_version,
                )
                .values(booking_version=expected_version + 1)
                .execution_options(synchronize_session="evaluate")
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error bumping booking version for {tutor_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking version: {str(e)}")
