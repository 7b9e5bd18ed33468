"""Half-open time interval used for booking and conflict checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from ..core.timezone_utils import ensure_utc


@dataclass(frozen=True)
class TimeRange:
    """
    A ``[start, end)`` interval in UTC.

    Touching ranges do not overlap: a range ending at T and another starting
    at T can both be booked.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = ensure_utc(self.start)
        end = ensure_utc(self.end)
        if not start < end:
            raise ValueError("TimeRange start must be before end")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def of(cls, start: datetime, end: datetime) -> "TimeRange":
        return cls(start=start, end=end)

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        instant = ensure_utc(instant)
        return self.start <= instant < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_hours(self) -> Decimal:
        return Decimal(int(self.duration.total_seconds())) / Decimal(3600)

    def to_dict(self) -> dict[str, str]:
        return {"startTime": self.start.isoformat(), "endTime": self.end.isoformat()}
