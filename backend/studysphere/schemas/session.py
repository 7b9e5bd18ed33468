# backend/studysphere/schemas/session.py
"""
Session request bodies.

Time bounds and business rules (future start, end after start, location for
offline sessions, rating range) are enforced in the services so the error
messages match across every entry point; schemas only shape the payload.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictRequestModel

SessionModeLiteral = Literal["online", "offline"]


class SessionCreate(StrictRequestModel):
    """Direct booking of a session with a tutor."""

    tutor_id: str = Field(..., min_length=1, description="Tutor user id")
    subject: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    start_time: datetime
    end_time: datetime
    mode: SessionModeLiteral = "online"
    location: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("location", "description", "notes")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class SessionCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class CompletionRequestBody(StrictRequestModel):
    notes: Optional[str] = Field(None, max_length=2000)


class CompletionReject(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class SessionReschedule(StrictRequestModel):
    new_start_time: datetime
    new_end_time: datetime
    reason: Optional[str] = Field(None, max_length=1000)


class SessionReview(StrictRequestModel):
    rating: int
    review: Optional[str] = Field(None, max_length=2000)


class SessionNotesUpdate(StrictRequestModel):
    notes: Optional[str] = Field(None, max_length=5000)


class AvailabilityCheck(StrictRequestModel):
    tutor_id: str = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime
