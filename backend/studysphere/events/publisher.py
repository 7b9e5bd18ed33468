"""Event publisher - fans domain events out to participants over a message transport."""
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, Protocol

from ..core.exceptions import NotificationException
from .transport import LoggingTransport, MessageTransport

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


def conversation_for_user(user_id: str) -> str:
    return f"user:{user_id}"


class EventPublisher:
    """Publishes domain events to each recipient's notification channel."""

    def __init__(self, transport: MessageTransport | None = None):
        self.transport: MessageTransport = transport or LoggingTransport()

    @staticmethod
    def serialize(event: Event) -> Dict[str, Any]:
        payload = event.to_dict()
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
            elif isinstance(value, Decimal):
                payload[key] = float(value)
        return {"type": type(event).__name__, "data": payload}

    def publish(self, event: Event, recipients: Iterable[str]) -> None:
        """
        Send ``event`` to every recipient.

        Raises:
            NotificationException: if the transport fails for any recipient
        """
        message = self.serialize(event)
        failures = []
        for user_id in dict.fromkeys(recipients):
            try:
                self.transport.send(conversation_for_user(user_id), message)
            except Exception as e:
                failures.append(user_id)
                logger.error(f"Failed to deliver {message['type']} to {user_id}: {str(e)}")
        if failures:
            raise NotificationException(
                f"Failed to deliver {message['type']}",
                details={"recipients": failures},
            )
