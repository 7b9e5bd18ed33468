# backend/studysphere/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import classroom, payments, session_requests, sessions

__all__ = [
    "classroom",
    "payments",
    "session_requests",
    "sessions",
]
