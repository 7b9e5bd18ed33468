# backend/studysphere/services/conflict_checker.py
"""
Conflict Checker Service for StudySphere

Detects overlapping active sessions for a tutor or a student and produces
the display-only list of free hourly slots. Only scheduled and rescheduled
sessions block a booking; ranges are half-open, so back-to-back sessions
never conflict.
"""

from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..core.timezone_utils import ensure_utc, local_hour_to_utc, utc_now
from ..domain.time_range import TimeRange
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository, PartyRole
from .base import BaseService

logger = logging.getLogger(__name__)


class ConflictChecker(BaseService):
    """Service for checking session conflicts and time validation."""

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        party_id: str,
        role: PartyRole,
        candidate: TimeRange,
        exclude_session_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Active sessions of the party that overlap ``candidate``.

        Returns:
            Conflict summaries (id, title, startTime, endTime, status)
        """
        sessions = self.repository.get_active_sessions_for_party(
            party_id, role, exclude_session_id=exclude_session_id
        )

        conflicts = [s.to_summary() for s in sessions if s.time_range.overlaps(candidate)]

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} session conflicts for {role} {party_id} "
                f"between {candidate.start.isoformat()}-{candidate.end.isoformat()}"
            )

        return conflicts

    def has_conflict(
        self,
        party_id: str,
        role: PartyRole,
        candidate: TimeRange,
        exclude_session_id: Optional[str] = None,
    ) -> bool:
        """Boolean form of ``find_conflicts``."""
        return bool(self.find_conflicts(party_id, role, candidate, exclude_session_id))

    @staticmethod
    def validate_time_range(
        start_time: datetime, end_time: datetime, now: Optional[datetime] = None
    ) -> TimeRange:
        """
        Validate booking bounds and build the TimeRange.

        Raises:
            ValidationException: if start is not in the future or end is not after start
        """
        current = ensure_utc(now) if now else utc_now()
        start = ensure_utc(start_time)
        end = ensure_utc(end_time)
        if start <= current:
            raise ValidationException("Session start time must be in the future")
        if end <= start:
            raise ValidationException("Session end time must be after start time")
        return TimeRange(start=start, end=end)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self, tutor_id: str, target_date: date, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        One-hour slots within the tutor's working day that are free and in the future.

        Display only: slots are re-validated at booking time.
        """
        current = ensure_utc(now) if now else utc_now()
        tz_name = settings.default_timezone
        day_start = local_hour_to_utc(target_date, settings.availability_day_start_hour, tz_name)
        day_end = local_hour_to_utc(target_date, settings.availability_day_end_hour, tz_name)
        if day_end <= day_start:
            return []

        booked = [
            s.time_range
            for s in self.repository.get_active_tutor_sessions_between(tutor_id, day_start, day_end)
        ]

        slots: List[Dict[str, Any]] = []
        for hour in range(settings.availability_day_start_hour, settings.availability_day_end_hour):
            slot = TimeRange(
                start=local_hour_to_utc(target_date, hour, tz_name),
                end=local_hour_to_utc(target_date, hour + 1, tz_name),
            )
            if slot.start <= current:
                continue
            if any(slot.overlaps(existing) for existing in booked):
                continue
            slots.append({**slot.to_dict(), "available": True})
        return slots
