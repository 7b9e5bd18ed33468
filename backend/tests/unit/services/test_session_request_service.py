from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from studysphere.core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    InvalidStateTransitionException,
    NotFoundException,
    SessionRequestExpiredException,
    ValidationException,
)
from studysphere.models.session_request import SessionRequest, SessionRequestStatus
from studysphere.models.tutoring_session import SessionStatus, TutoringSession
from studysphere.principal import Student, Tutor
from studysphere.schemas.session_request import SessionRequestCreate
from studysphere.services.session_request_service import SessionRequestService
from tests.factories import (
    OTHER_STUDENT_ID,
    STUDENT_ID,
    TUTOR_ID,
    create_request,
    create_session,
    future_slot,
)


@pytest.fixture
def notifications() -> MagicMock:
    notifier = MagicMock()
    notifier.notify.return_value = True
    return notifier


@pytest.fixture
def service(db, notifications) -> SessionRequestService:
    return SessionRequestService(db, notification_service=notifications)


def _payload(**overrides) -> SessionRequestCreate:
    start, end = overrides.pop("slot", None) or future_slot()
    values = dict(
        tutor_id=TUTOR_ID,
        subject="Physics",
        title="Kinematics",
        requested_start_time=start,
        requested_end_time=end,
        proposed_price=Decimal("35.00"),
        message="Exam next week",
    )
    values.update(overrides)
    return SessionRequestCreate(**values)


# Creation


def test_create_request_is_pending_with_expiry(service, profiles, notifications) -> None:
    before = datetime.now(timezone.utc)
    request = service.create_request(Student(STUDENT_ID), _payload())

    assert request.status == SessionRequestStatus.PENDING.value
    assert request.session_id is None
    expires_at = request.expires_at
    assert before + timedelta(hours=47) < expires_at <= datetime.now(timezone.utc) + timedelta(
        hours=48
    )
    notifications.notify.assert_called_once()
    assert list(notifications.notify.call_args.args[1]) == [TUTOR_ID]


def test_create_request_validation(service, profiles) -> None:
    with pytest.raises(ForbiddenException):
        service.create_request(Tutor(TUTOR_ID), _payload())
    with pytest.raises(ValidationException, match="Proposed price must be greater than 0"):
        service.create_request(Student(STUDENT_ID), _payload(proposed_price=Decimal("0")))
    with pytest.raises(ValidationException, match="Location is required"):
        service.create_request(Student(STUDENT_ID), _payload(mode="offline"))
    with pytest.raises(ValidationException, match="must be in the future"):
        service.create_request(Student(STUDENT_ID), _payload(slot=future_slot(days=-1)))


def test_create_request_unknown_tutor(service, make_student) -> None:
    make_student()
    with pytest.raises(NotFoundException, match="Tutor not found"):
        service.create_request(Student(STUDENT_ID), _payload(tutor_id="ghost"))


def test_duplicate_pending_request_is_rejected(service, profiles) -> None:
    start, end = future_slot(hour=10)
    first = service.create_request(Student(STUDENT_ID), _payload(slot=(start, end)))

    with pytest.raises(ValidationException) as exc_info:
        service.create_request(
            Student(STUDENT_ID),
            _payload(slot=(start + timedelta(minutes=30), end + timedelta(minutes=30))),
        )
    assert exc_info.value.code == "DUPLICATE_REQUEST"
    assert exc_info.value.details["existingRequestId"] == first.id

    # Outside the window is fine
    far_start, far_end = future_slot(days=3, hour=15)
    assert service.create_request(Student(STUDENT_ID), _payload(slot=(far_start, far_end))).id


def test_expired_request_does_not_hide_live_duplicate(db, service, profiles) -> None:
    start, end = future_slot(hour=10)
    now = datetime.now(timezone.utc)
    create_request(db, start=start, end=end, expires_at=now - timedelta(minutes=5))
    live = create_request(db, start=start, end=end)

    with pytest.raises(ValidationException) as exc_info:
        service.create_request(
            Student(STUDENT_ID),
            _payload(slot=(start + timedelta(minutes=10), end + timedelta(minutes=10))),
        )
    assert exc_info.value.details["existingRequestId"] == live.id


def test_expired_request_alone_is_not_a_duplicate(db, service, profiles) -> None:
    start, end = future_slot(hour=10)
    expired_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    create_request(db, start=start, end=end, expires_at=expired_at)

    request = service.create_request(Student(STUDENT_ID), _payload(slot=(start, end)))

    assert request.status == SessionRequestStatus.PENDING.value


# Acceptance


def test_accept_creates_linked_scheduled_session(db, service, profiles) -> None:
    request = create_request(db)

    accepted, session = service.accept_request(Tutor(TUTOR_ID), request.id)

    assert accepted.status == SessionRequestStatus.ACCEPTED.value
    assert accepted.session_id == session.id
    assert accepted.tutor_response == "Request accepted"
    assert session.status == SessionStatus.SCHEDULED.value
    assert session.session_request_id == request.id
    # Proposed price is carried over verbatim, not recomputed from the hourly rate
    assert session.price == Decimal("35.00")
    assert db.query(TutoringSession).count() == 1


def test_accept_rejects_request_whose_start_has_passed(db, service, profiles) -> None:
    now = datetime.now(timezone.utc)
    request = create_request(db, start=now - timedelta(hours=1), end=now)

    with pytest.raises(ValidationException, match="must be in the future"):
        service.accept_request(Tutor(TUTOR_ID), request.id)

    db.refresh(request)
    assert request.status == SessionRequestStatus.PENDING.value
    assert db.query(TutoringSession).count() == 0


def test_accept_requires_student_profile(db, service, make_tutor) -> None:
    make_tutor()
    request = create_request(db)

    with pytest.raises(NotFoundException, match="Student profile not found"):
        service.accept_request(Tutor(TUTOR_ID), request.id)

    assert db.query(TutoringSession).count() == 0


def test_accept_conflict_keeps_request_pending(db, service, profiles) -> None:
    start, end = future_slot()
    create_session(db, student_id=OTHER_STUDENT_ID, start=start, end=end)
    request = create_request(db, start=start, end=end)

    with pytest.raises(BookingConflictException) as exc_info:
        service.accept_request(Tutor(TUTOR_ID), request.id)

    assert exc_info.value.details["party"] == "tutor"
    assert exc_info.value.message == "You have a conflicting session at this time"
    db.expire_all()
    reloaded = db.get(SessionRequest, request.id)
    assert reloaded.status == SessionRequestStatus.PENDING.value
    assert reloaded.session_id is None
    assert db.query(TutoringSession).count() == 1


def test_accept_rolls_back_session_when_request_already_answered(db, service, profiles) -> None:
    """Losing the pending compare-and-swap must not leave an orphan session."""
    request = create_request(db)
    repo = service.repository
    repo.transition_from_pending = MagicMock(return_value=False)

    with pytest.raises(InvalidStateTransitionException):
        service.accept_request(Tutor(TUTOR_ID), request.id)

    db.expire_all()
    assert db.query(TutoringSession).count() == 0


def test_accept_requires_owning_tutor(db, service, profiles) -> None:
    request = create_request(db)
    with pytest.raises(ForbiddenException):
        service.accept_request(Tutor("other-tutor"), request.id)
    with pytest.raises(ForbiddenException):
        service.accept_request(Student(STUDENT_ID), request.id)


def test_second_response_fails(db, service, profiles) -> None:
    request = create_request(db)
    service.accept_request(Tutor(TUTOR_ID), request.id)

    with pytest.raises(InvalidStateTransitionException, match="already been responded to"):
        service.decline_request(Tutor(TUTOR_ID), request.id, "Changed my mind")
    with pytest.raises(InvalidStateTransitionException):
        service.cancel_request(Student(STUDENT_ID), request.id)


# Decline and cancel


def test_decline_requires_reason(db, service, profiles) -> None:
    request = create_request(db)
    with pytest.raises(ValidationException, match="Decline reason is required"):
        service.decline_request(Tutor(TUTOR_ID), request.id, "   ")

    declined = service.decline_request(Tutor(TUTOR_ID), request.id, " Fully booked ")
    assert declined.status == SessionRequestStatus.DECLINED.value
    assert declined.decline_reason == "Fully booked"
    assert declined.session_id is None


def test_student_cancels_own_pending_request(db, service, profiles) -> None:
    request = create_request(db)
    with pytest.raises(ForbiddenException):
        service.cancel_request(Student(OTHER_STUDENT_ID), request.id)

    cancelled = service.cancel_request(Student(STUDENT_ID), request.id)
    assert cancelled.status == SessionRequestStatus.CANCELLED.value


# Expiry


@pytest.mark.parametrize("action", ["accept", "decline", "cancel"])
def test_expired_request_is_inert(db, service, profiles, action: str) -> None:
    request = create_request(db, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

    with pytest.raises(SessionRequestExpiredException):
        if action == "accept":
            service.accept_request(Tutor(TUTOR_ID), request.id)
        elif action == "decline":
            service.decline_request(Tutor(TUTOR_ID), request.id, "Too late")
        else:
            service.cancel_request(Student(STUDENT_ID), request.id)

    db.expire_all()
    assert db.get(SessionRequest, request.id).status == SessionRequestStatus.PENDING.value
    assert db.query(TutoringSession).count() == 0


# Reads


def test_list_and_stats_by_party(db, service, profiles) -> None:
    create_request(db)
    start, end = future_slot(days=3)
    create_request(
        db,
        start=start,
        end=end,
        status=SessionRequestStatus.DECLINED.value,
        decline_reason="x",
    )
    start, end = future_slot(days=4)
    create_request(db, start=start, end=end, student_id=OTHER_STUDENT_ID)

    sent, total = service.list_requests(Student(STUDENT_ID))
    assert total == 2
    assert {r.student_id for r in sent} == {STUDENT_ID}

    received, total = service.list_requests(Tutor(TUTOR_ID), status="pending")
    assert total == 2

    stats = service.get_stats(Student(STUDENT_ID))
    assert stats == {"pending": 1, "accepted": 0, "declined": 1, "cancelled": 0, "total": 2}


def test_get_request_access(db, service) -> None:
    request = create_request(db)
    assert service.get_request(Tutor(TUTOR_ID), request.id).id == request.id
    with pytest.raises(ForbiddenException):
        service.get_request(Student(OTHER_STUDENT_ID), request.id)
    with pytest.raises(NotFoundException):
        service.get_request(Student(STUDENT_ID), "01HF4G12ABCDEF3456789XYZAB")
