"""
Notification Service for StudySphere

Fire-and-forget delivery of booking events to the participants. Delivery
failures are logged and never propagate to the caller: the booking
operation that triggered the notification has already committed.
"""

import logging
from typing import Iterable, Optional

from ..events.publisher import Event, EventPublisher

logger = logging.getLogger(__name__)


class NotificationService:
    """Wraps the event publisher so callers never see delivery errors."""

    def __init__(self, publisher: Optional[EventPublisher] = None):
        self.publisher = publisher or EventPublisher()

    def notify(self, event: Event, recipients: Iterable[str]) -> bool:
        """
        Publish ``event`` to ``recipients``.

        Returns:
            True if delivered, False if delivery failed (already logged)
        """
        try:
            self.publisher.publish(event, recipients)
            return True
        except Exception as e:
            logger.error(f"Failed to send {type(event).__name__} notification: {str(e)}")
            return False
