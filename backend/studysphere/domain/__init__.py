"""Pure domain value types with no persistence dependencies."""

from .time_range import TimeRange

__all__ = ["TimeRange"]
