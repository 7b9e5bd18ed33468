"""SQLAlchemy models for the StudySphere platform."""

from .payment import Payment, PaymentMethod, PaymentStatus
from .profile import StudentProfile, TutorProfile
from .session_request import SessionRequest, SessionRequestStatus
from .tutoring_session import SessionMode, SessionStatus, TutoringSession

__all__ = [
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "SessionMode",
    "SessionRequest",
    "SessionRequestStatus",
    "SessionStatus",
    "StudentProfile",
    "TutorProfile",
    "TutoringSession",
]
