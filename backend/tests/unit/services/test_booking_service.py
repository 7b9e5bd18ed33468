from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from studysphere.core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from studysphere.models.profile import TutorProfile
from studysphere.models.tutoring_session import SessionStatus, TutoringSession
from studysphere.principal import Student, Tutor
from studysphere.schemas.session import SessionCreate
from studysphere.services.booking_service import (
    COUNTERPARTY_CONFLICT_MESSAGE,
    OWN_CONFLICT_MESSAGE,
    BookingService,
    validate_location,
)
from tests.factories import (
    OTHER_STUDENT_ID,
    OTHER_TUTOR_ID,
    STUDENT_ID,
    TUTOR_ID,
    create_session,
    future_slot,
)


@pytest.fixture
def notifications() -> MagicMock:
    notifier = MagicMock()
    notifier.notify.return_value = True
    return notifier


@pytest.fixture
def service(db, notifications) -> BookingService:
    return BookingService(db, notification_service=notifications)


def _booking(tutor_id: str = TUTOR_ID, hours: float = 1.0, **overrides) -> SessionCreate:
    start, end = overrides.pop("slot", None) or future_slot(hours=hours)
    values = dict(
        tutor_id=tutor_id,
        subject="Mathematics",
        title="Algebra basics",
        start_time=start,
        end_time=end,
    )
    values.update(overrides)
    return SessionCreate(**values)


def test_direct_booking_prices_from_hourly_rate(db, service, profiles, notifications) -> None:
    session = service.create_session(Student(STUDENT_ID), _booking(hours=1.5))

    assert session.status == SessionStatus.SCHEDULED.value
    assert session.price == Decimal("60.00")
    assert session.tutor_id == TUTOR_ID
    assert session.student_id == STUDENT_ID
    assert session.payment_status == "pending"
    assert db.query(TutoringSession).count() == 1
    notifications.notify.assert_called_once()
    recipients = notifications.notify.call_args.args[1]
    assert set(recipients) == {TUTOR_ID, STUDENT_ID}


def test_booking_bumps_tutor_booking_version(db, service, profiles) -> None:
    tutor, _ = profiles
    service.create_session(Student(STUDENT_ID), _booking())
    db.refresh(tutor)
    assert tutor.booking_version == 1


def test_only_students_can_book(service, profiles) -> None:
    with pytest.raises(ForbiddenException, match="Only students can book sessions"):
        service.create_session(Tutor(TUTOR_ID), _booking())


def test_unknown_tutor_is_not_found(service, make_student) -> None:
    make_student()
    with pytest.raises(NotFoundException, match="Tutor not found"):
        service.create_session(Student(STUDENT_ID), _booking(tutor_id="nobody"))


def test_missing_student_profile_is_not_found(service, make_tutor) -> None:
    make_tutor()
    with pytest.raises(NotFoundException, match="Student profile not found"):
        service.create_session(Student(STUDENT_ID), _booking())


def test_past_start_is_rejected(service, profiles) -> None:
    start, end = future_slot(days=-1)
    with pytest.raises(ValidationException, match="must be in the future"):
        service.create_session(Student(STUDENT_ID), _booking(slot=(start, end)))


def test_offline_booking_requires_location(service, profiles) -> None:
    with pytest.raises(ValidationException, match="Location is required for offline sessions"):
        service.create_session(Student(STUDENT_ID), _booking(mode="offline"))

    session = service.create_session(
        Student(STUDENT_ID), _booking(mode="offline", location="  Library room 2 ")
    )
    assert session.location == "Library room 2"


def test_validate_location_drops_location_for_online() -> None:
    assert validate_location("online", "somewhere") is None


def test_tutor_conflict_is_reported_to_student_as_counterparty(db, service, profiles) -> None:
    start, end = future_slot()
    existing = create_session(db, student_id=OTHER_STUDENT_ID, start=start, end=end)

    with pytest.raises(BookingConflictException) as exc_info:
        service.create_session(
            Student(STUDENT_ID),
            _booking(slot=(start + timedelta(minutes=30), end + timedelta(minutes=30))),
        )

    exc = exc_info.value
    assert exc.message == COUNTERPARTY_CONFLICT_MESSAGE
    assert exc.details["party"] == "tutor"
    assert [c["id"] for c in exc.conflicting_sessions] == [existing.id]
    assert db.query(TutoringSession).count() == 1


def test_student_own_conflict_uses_own_message(db, service, profiles, make_tutor) -> None:
    make_tutor(OTHER_TUTOR_ID)
    start, end = future_slot()
    create_session(db, tutor_id=OTHER_TUTOR_ID, start=start, end=end)

    with pytest.raises(BookingConflictException) as exc_info:
        service.create_session(Student(STUDENT_ID), _booking(slot=(start, end)))

    assert exc_info.value.message == OWN_CONFLICT_MESSAGE
    assert exc_info.value.details["party"] == "student"


def test_back_to_back_bookings_both_succeed(service, profiles) -> None:
    start, end = future_slot(hour=10)
    first = service.create_session(Student(STUDENT_ID), _booking(slot=(start, end)))
    second = service.create_session(
        Student(STUDENT_ID), _booking(slot=(end, end + timedelta(hours=1)))
    )
    assert first.id != second.id


def test_concurrent_booking_loses_compare_and_swap(db, service, profiles) -> None:
    """A booking committed between version read and write makes the second writer fail."""
    repo = service.profile_repository
    original = repo.get_booking_version

    def stale_version(tutor_id: str) -> int:
        version = original(tutor_id)
        # Another request books and commits right after we read
        db.query(TutorProfile).filter(TutorProfile.user_id == tutor_id).update(
            {TutorProfile.booking_version: version + 1}
        )
        return version

    repo.get_booking_version = stale_version

    with pytest.raises(BookingConflictException) as exc_info:
        service.create_session(Student(STUDENT_ID), _booking())

    assert exc_info.value.details["reason"] == "concurrent_booking"
    assert db.query(TutoringSession).count() == 0


def test_check_availability_reports_tutor_conflicts(db, service, profiles) -> None:
    start, end = future_slot()
    existing = create_session(db, start=start, end=end)

    busy = service.check_availability(TUTOR_ID, start, end)
    assert busy["available"] is False
    assert busy["conflictingSessions"][0]["id"] == existing.id

    free = service.check_availability(TUTOR_ID, end, end + timedelta(hours=1))
    assert free == {"available": True, "conflictingSessions": []}


def test_notification_failure_does_not_fail_booking(service, profiles, notifications) -> None:
    notifications.notify.return_value = False
    session = service.create_session(Student(STUDENT_ID), _booking())
    assert session.id
