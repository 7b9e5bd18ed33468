"""Session, session-request and payment domain events."""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class SessionCreated:
    """Fired after a session is booked directly or from an accepted request."""

    session_id: str
    tutor_id: str
    student_id: str
    start_time: datetime
    end_time: datetime
    session_request_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionCancelled:
    session_id: str
    cancelled_by: str
    cancelled_at: datetime
    payment_refunded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionRescheduled:
    session_id: str
    rescheduled_by: str
    start_time: datetime
    end_time: datetime
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionCompletionRequested:
    session_id: str
    requested_by: str
    requested_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionCompleted:
    session_id: str
    completed_at: datetime
    payment_captured: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionCompletionRejected:
    session_id: str
    rejected_by: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionRequestCreated:
    request_id: str
    student_id: str
    tutor_id: str
    requested_start_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionRequestResponded:
    """Fired when a request is accepted, declined or cancelled."""

    request_id: str
    status: str
    responded_by: str
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PaymentStatusChanged:
    payment_id: str
    session_id: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
