# backend/studysphere/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...events import EventPublisher
from ...services.booking_service import BookingService
from ...services.classroom_service import ClassroomService
from ...services.notification_service import NotificationService
from ...services.payment_service import PaymentService
from ...services.session_request_service import SessionRequestService
from ...services.session_service import SessionService
from .database import get_db


@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    """Process-wide publisher; the default transport is stateless."""
    return EventPublisher()


def get_notification_service() -> NotificationService:
    return NotificationService(get_event_publisher())


def get_payment_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> PaymentService:
    return PaymentService(db, notification_service=notification_service)


def get_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    return BookingService(db, notification_service=notification_service)


def get_session_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
    payment_service: PaymentService = Depends(get_payment_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> SessionService:
    """
    Get session service instance with all dependencies.

    Args:
        db: Database session
        booking_service: Orchestrator for booking commits
        payment_service: Ledger used for refund-on-cancel and capture-on-completion
        notification_service: Fire-and-forget participant notifications

    Returns:
        SessionService instance
    """
    return SessionService(
        db,
        booking_service=booking_service,
        payment_service=payment_service,
        notification_service=notification_service,
    )


def get_session_request_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> SessionRequestService:
    return SessionRequestService(
        db, booking_service=booking_service, notification_service=notification_service
    )


def get_classroom_service(db: Session = Depends(get_db)) -> ClassroomService:
    return ClassroomService(db)
