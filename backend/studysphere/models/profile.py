"""
Tutor and student profile models.

Profiles hold the marketplace-facing data the booking core needs: the
tutor's hourly rate and the per-tutor booking version used to detect
concurrent bookings. Identity itself lives with the auth provider; both
profiles are keyed by the user id carried in the bearer token.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class TutorProfile(Base):
    """Tutor profile with the rate used to price new sessions."""

    __tablename__ = "tutor_profiles"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    display_name = Column(String(200), nullable=True)
    subjects = Column(String(500), nullable=True, comment="Comma separated subject names")
    hourly_rate = Column(Numeric(10, 2), nullable=False)

    # Incremented by every committed booking change for this tutor
    booking_version = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("hourly_rate > 0", name="ck_tutor_profiles_hourly_rate_positive"),
    )

    def __repr__(self) -> str:
        return f"<TutorProfile(user_id={self.user_id}, hourly_rate={self.hourly_rate})>"


class StudentProfile(Base):
    """Student profile; existence is required before a student can book."""

    __tablename__ = "student_profiles"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    display_name = Column(String(200), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<StudentProfile(user_id={self.user_id})>"
