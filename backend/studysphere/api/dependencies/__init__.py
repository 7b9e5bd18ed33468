# backend/studysphere/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from ...auth import get_current_actor
from .authz import require_roles, require_student, require_tutor
from .database import get_db
from .services import (
    get_booking_service,
    get_classroom_service,
    get_notification_service,
    get_payment_service,
    get_session_request_service,
    get_session_service,
)

__all__ = [
    # Auth
    "get_current_actor",
    "require_roles",
    "require_student",
    "require_tutor",
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_classroom_service",
    "get_notification_service",
    "get_payment_service",
    "get_session_request_service",
    "get_session_service",
]
