"""Session request bodies."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from ._strict_base import StrictRequestModel
from .session import SessionModeLiteral


class SessionRequestCreate(StrictRequestModel):
    tutor_id: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    requested_start_time: datetime
    requested_end_time: datetime
    mode: SessionModeLiteral = "online"
    location: Optional[str] = Field(None, max_length=500)
    proposed_price: Decimal = Field(..., max_digits=10, decimal_places=2)
    message: Optional[str] = Field(None, max_length=2000)


class SessionRequestAccept(StrictRequestModel):
    tutor_response: Optional[str] = Field(None, max_length=1000)


class SessionRequestDecline(StrictRequestModel):
    decline_reason: Optional[str] = Field(None, max_length=1000)
    tutor_response: Optional[str] = Field(None, max_length=1000)
