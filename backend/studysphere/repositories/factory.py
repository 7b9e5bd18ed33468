# backend/studysphere/repositories/factory.py
"""
Repository Factory for StudySphere

Services build their repositories here unless a test injects its own.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .conflict_checker_repository import ConflictCheckerRepository
    from .payment_repository import PaymentRepository
    from .profile_repository import ProfileRepository
    from .session_repository import SessionRepository
    from .session_request_repository import SessionRequestRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services and tests can swap
    implementations in one place.
    """

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> "SessionRepository":
        """Create repository for tutoring session operations."""
        from .session_repository import SessionRepository

        return SessionRepository(db)

    @staticmethod
    def create_session_request_repository(db: Session) -> "SessionRequestRepository":
        """Create repository for session request operations."""
        from .session_request_repository import SessionRequestRepository

        return SessionRequestRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        """Create repository for payment ledger operations."""
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_profile_repository(db: Session) -> "ProfileRepository":
        """Create repository for tutor and student profiles."""
        from .profile_repository import ProfileRepository

        return ProfileRepository(db)
