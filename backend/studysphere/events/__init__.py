"""Domain events and their delivery."""

from .publisher import EventPublisher
from .transport import LoggingTransport, MessageTransport

__all__ = ["EventPublisher", "LoggingTransport", "MessageTransport"]
