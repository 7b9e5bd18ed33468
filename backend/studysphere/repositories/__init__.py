"""
Repository layer for StudySphere.

Repositories encapsulate data access; services own transactions.
"""

from .base_repository import BaseRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .profile_repository import ProfileRepository
from .session_repository import SessionRepository
from .session_request_repository import SessionRequestRepository

__all__ = [
    "BaseRepository",
    "ConflictCheckerRepository",
    "PaymentRepository",
    "ProfileRepository",
    "RepositoryFactory",
    "SessionRepository",
    "SessionRequestRepository",
]
