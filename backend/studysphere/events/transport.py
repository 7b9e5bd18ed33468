"""Message transport used to push booking notifications to users."""

import logging
from typing import Any, Dict, Protocol

logger = logging.getLogger(__name__)


class MessageTransport(Protocol):
    """Delivers a payload to a conversation. No delivery guarantee is required."""

    def send(self, conversation_id: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingTransport:
    """Default transport: records the notification in the application log."""

    def send(self, conversation_id: str, payload: Dict[str, Any]) -> None:
        logger.info(
            "Notification for %s: %s",
            conversation_id,
            payload.get("type"),
            extra={"conversation_id": conversation_id, "payload": payload},
        )
