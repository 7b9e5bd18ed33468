from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from studysphere.core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from studysphere.models.payment import Payment, PaymentStatus
from studysphere.models.profile import TutorProfile
from studysphere.models.tutoring_session import SessionStatus
from studysphere.principal import Admin, Student, Tutor
from studysphere.schemas.session import SessionCreate
from studysphere.services.payment_service import PaymentService
from studysphere.services.session_service import SessionService
from tests.factories import (
    OTHER_STUDENT_ID,
    STUDENT_ID,
    TUTOR_ID,
    create_payment,
    create_session,
    future_slot,
)


def _transaction_cm() -> MagicMock:
    cm = MagicMock()
    cm.__enter__.return_value = None
    cm.__exit__.return_value = None
    return cm


@pytest.fixture
def notifications() -> MagicMock:
    notifier = MagicMock()
    notifier.notify.return_value = True
    return notifier


@pytest.fixture
def service(db, notifications) -> SessionService:
    payment_service = PaymentService(db, mode="development", notification_service=notifications)
    return SessionService(db, payment_service=payment_service, notification_service=notifications)


# ---------------------------------------------------------------------------
# Guards, isolated from the database
# ---------------------------------------------------------------------------


def _mock_service(session: SimpleNamespace) -> SessionService:
    repository = MagicMock()
    repository.get_by_id.return_value = session
    service = SessionService(
        MagicMock(),
        repository=repository,
        booking_service=MagicMock(),
        payment_service=MagicMock(),
        notification_service=MagicMock(),
    )
    service.transaction = MagicMock(return_value=_transaction_cm())
    return service


def _fake_session(status: str) -> SimpleNamespace:
    session = SimpleNamespace(
        id="01HF4G12ABCDEF3456789XYZAB",
        tutor_id=TUTOR_ID,
        student_id=STUDENT_ID,
        status=status,
        cancel=MagicMock(),
        approve_completion=MagicMock(),
    )
    session.is_participant = lambda user_id: user_id in (TUTOR_ID, STUDENT_ID)
    return session


def test_approve_from_scheduled_is_a_state_error() -> None:
    session = _fake_session(SessionStatus.SCHEDULED.value)
    service = _mock_service(session)

    with pytest.raises(InvalidStateTransitionException, match="not awaiting completion approval"):
        service.approve_completion(Student(STUDENT_ID), session.id)

    session.approve_completion.assert_not_called()
    service.payment_service.capture_if_authorized.assert_not_called()


@pytest.mark.parametrize("status", [SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value])
def test_cancel_terminal_session_reports_current_status(status: str) -> None:
    session = _fake_session(status)
    service = _mock_service(session)

    with pytest.raises(InvalidStateTransitionException) as exc_info:
        service.cancel_session(Tutor(TUTOR_ID), session.id)

    assert exc_info.value.message == f"Session is already {status}"
    assert exc_info.value.details["currentStatus"] == status
    session.cancel.assert_not_called()
    service.payment_service.refund_if_paid.assert_not_called()


def test_cancel_by_outsider_is_forbidden() -> None:
    session = _fake_session(SessionStatus.SCHEDULED.value)
    service = _mock_service(session)

    with pytest.raises(ForbiddenException):
        service.cancel_session(Student(OTHER_STUDENT_ID), session.id)


def test_missing_session_is_not_found() -> None:
    service = _mock_service(None)  # type: ignore[arg-type]
    with pytest.raises(NotFoundException, match="Session not found"):
        service.get_session(Student(STUDENT_ID), "01HF4G12ABCDEF3456789XYZAB")


# ---------------------------------------------------------------------------
# Lifecycle against the database
# ---------------------------------------------------------------------------


def test_completion_round_trip_captures_payment(db, service) -> None:
    session = create_session(db)
    payment = create_payment(db, session, status=PaymentStatus.AUTHORIZED.value)

    pending = service.request_completion(Tutor(TUTOR_ID), session.id, notes="Covered chapter 3")
    assert pending.status == SessionStatus.PENDING_COMPLETION.value

    result = service.approve_completion(Student(STUDENT_ID), session.id)

    assert result.session.status == SessionStatus.COMPLETED.value
    assert result.session.completion_notes == "Covered chapter 3"
    assert result.payment_captured is True
    db.refresh(payment)
    assert payment.status == PaymentStatus.CAPTURED.value
    assert result.session.payment_status == PaymentStatus.CAPTURED.value


def test_second_approve_fails_without_second_capture(db, service) -> None:
    session = create_session(db, status=SessionStatus.PENDING_COMPLETION.value)
    create_payment(db, session)
    service.approve_completion(Student(STUDENT_ID), session.id)

    service.payment_service = MagicMock()
    with pytest.raises(InvalidStateTransitionException, match="Session is already completed"):
        service.approve_completion(Student(STUDENT_ID), session.id)
    service.payment_service.capture_if_authorized.assert_not_called()


def test_approve_without_payment_reports_no_capture(db, service) -> None:
    session = create_session(db, status=SessionStatus.PENDING_COMPLETION.value)
    result = service.approve_completion(Student(STUDENT_ID), session.id)
    assert result.session.status == SessionStatus.COMPLETED.value
    assert result.payment_captured is False


def test_only_assigned_tutor_requests_completion(db, service) -> None:
    session = create_session(db)
    with pytest.raises(ForbiddenException, match="Only the assigned tutor"):
        service.request_completion(Student(STUDENT_ID), session.id)
    with pytest.raises(ForbiddenException):
        service.request_completion(Tutor("some-other-tutor"), session.id)


def test_reject_completion_returns_to_scheduled(db, service) -> None:
    session = create_session(db, status=SessionStatus.PENDING_COMPLETION.value)

    rejected = service.reject_completion(Student(STUDENT_ID), session.id, "Session was cut short")

    assert rejected.status == SessionStatus.SCHEDULED.value
    assert rejected.completion_approved is False
    assert rejected.completion_rejection_reason == "Session was cut short"
    with pytest.raises(InvalidStateTransitionException):
        service.reject_completion(Student(STUDENT_ID), session.id)


def test_tutor_cancel_refunds_authorized_payment(db, service) -> None:
    session = create_session(db)
    payment = create_payment(db, session, status=PaymentStatus.AUTHORIZED.value)

    result = service.cancel_session(Tutor(TUTOR_ID), session.id, "Tutor unavailable")

    assert result.session.status == SessionStatus.CANCELLED.value
    assert result.session.cancelled_by == TUTOR_ID
    assert result.session.cancel_reason == "Tutor unavailable"
    assert result.payment_refunded is True
    db.refresh(payment)
    assert payment.status == PaymentStatus.REFUNDED.value
    assert payment.refund_amount == Decimal("40.00")
    assert payment.refund_initiated_by == TUTOR_ID


def test_cancel_commits_even_when_refund_raises(db, notifications) -> None:
    payment_service = MagicMock()
    payment_service.refund_if_paid.side_effect = RuntimeError("gateway exploded")
    service = SessionService(
        db, payment_service=payment_service, notification_service=notifications
    )
    session = create_session(db)

    result = service.cancel_session(Student(STUDENT_ID), session.id)

    assert result.payment_refunded is False
    db.expire_all()
    assert service.repository.get_by_id(session.id).status == SessionStatus.CANCELLED.value


def test_cancel_twice_does_not_refund_twice(db, service) -> None:
    session = create_session(db)
    create_payment(db, session)
    service.cancel_session(Student(STUDENT_ID), session.id)

    with pytest.raises(InvalidStateTransitionException, match="Session is already cancelled"):
        service.cancel_session(Student(STUDENT_ID), session.id)
    assert db.query(Payment).filter(Payment.status == PaymentStatus.REFUNDED.value).count() == 1


def test_pending_completion_can_be_cancelled(db, service) -> None:
    session = create_session(db, status=SessionStatus.PENDING_COMPLETION.value)
    result = service.cancel_session(Student(STUDENT_ID), session.id)
    assert result.session.status == SessionStatus.CANCELLED.value


def test_reschedule_moves_session(db, service, profiles) -> None:
    start, end = future_slot(hour=10)
    session = create_session(db, start=start, end=end)
    new_start, new_end = start + timedelta(days=1), end + timedelta(days=1)

    moved = service.reschedule_session(Student(STUDENT_ID), session.id, new_start, new_end)

    assert moved.status == SessionStatus.RESCHEDULED.value
    assert moved.reschedule_reason == "Rescheduled by student"
    assert moved.time_range.start == new_start


def test_reschedule_into_own_old_slot_ignores_itself(db, service, profiles) -> None:
    start, end = future_slot(hour=10)
    session = create_session(db, start=start, end=end)

    moved = service.reschedule_session(
        Tutor(TUTOR_ID), session.id, start + timedelta(minutes=30), end + timedelta(minutes=30)
    )
    assert moved.status == SessionStatus.RESCHEDULED.value


def test_reschedule_conflict_leaves_session_unchanged(db, service, profiles) -> None:
    start, end = future_slot(hour=10)
    session_a = create_session(db, start=start, end=end)
    b_start, b_end = future_slot(days=3, hour=14)
    session_b = create_session(db, student_id=OTHER_STUDENT_ID, start=b_start, end=b_end)

    with pytest.raises(BookingConflictException) as exc_info:
        service.reschedule_session(
            Student(STUDENT_ID), session_a.id, b_start + timedelta(minutes=30), b_end
        )

    assert exc_info.value.conflicting_sessions[0]["id"] == session_b.id
    db.expire_all()
    reloaded = service.repository.get_by_id(session_a.id)
    assert reloaded.status == SessionStatus.SCHEDULED.value
    assert reloaded.time_range.start == start


def test_only_scheduled_sessions_reschedule(db, service, profiles) -> None:
    session = create_session(db, status=SessionStatus.RESCHEDULED.value)
    new_start, new_end = future_slot(days=5)
    with pytest.raises(InvalidStateTransitionException, match="Only scheduled sessions"):
        service.reschedule_session(Student(STUDENT_ID), session.id, new_start, new_end)


def test_price_survives_rate_change(db, service, profiles) -> None:
    tutor, _ = profiles
    start, end = future_slot()
    payload = SessionCreate(
        tutor_id=TUTOR_ID, subject="Math", title="Algebra", start_time=start, end_time=end
    )

    booked = service.create_session(Student(STUDENT_ID), payload)
    db.query(TutorProfile).filter(TutorProfile.id == tutor.id).update(
        {TutorProfile.hourly_rate: Decimal("90.00")}
    )
    db.commit()

    db.expire_all()
    assert service.get_session(Student(STUDENT_ID), booked.id).price == Decimal("40.00")


def test_review_rules(db, service) -> None:
    scheduled = create_session(db)
    with pytest.raises(InvalidStateTransitionException, match="Can only review completed sessions"):
        service.review_session(Student(STUDENT_ID), scheduled.id, 5)

    start, end = future_slot(days=4)
    completed = create_session(db, start=start, end=end, status=SessionStatus.COMPLETED.value)
    with pytest.raises(ValidationException, match="Rating must be between 1 and 5"):
        service.review_session(Student(STUDENT_ID), completed.id, 6)
    with pytest.raises(ForbiddenException):
        service.review_session(Tutor(TUTOR_ID), completed.id, 4)

    reviewed = service.review_session(Student(STUDENT_ID), completed.id, 4, "Very clear")
    assert reviewed.rating == 4
    with pytest.raises(ValidationException, match="already been reviewed"):
        service.review_session(Student(STUDENT_ID), completed.id, 5)


def test_get_session_access(db, service) -> None:
    session = create_session(db)
    assert service.get_session(Admin("admin-1"), session.id).id == session.id
    with pytest.raises(ForbiddenException, match="Access denied"):
        service.get_session(Student(OTHER_STUDENT_ID), session.id)


def test_list_and_stats_for_tutor(db, service) -> None:
    create_session(db)
    start, end = future_slot(days=3)
    create_session(db, start=start, end=end, status=SessionStatus.COMPLETED.value, rating=5)
    start, end = future_slot(days=4)
    create_session(db, start=start, end=end, status=SessionStatus.CANCELLED.value)

    sessions, total = service.list_sessions(Tutor(TUTOR_ID), status="all", page=1, limit=2)
    assert total == 3
    assert len(sessions) == 2
    # newest start first
    assert sessions[0].status == SessionStatus.CANCELLED.value

    stats = service.get_stats(Tutor(TUTOR_ID))
    assert stats["total"] == 3
    assert stats["scheduled"] == 1
    assert stats["completed"] == 1
    assert stats["cancelled"] == 1
    assert stats["averageRating"] == 5.0
    assert "averageRating" not in service.get_stats(Student(STUDENT_ID))


def test_list_tutor_sessions_requires_tutor(service) -> None:
    with pytest.raises(ForbiddenException):
        service.list_tutor_sessions(Student(STUDENT_ID))


def test_update_notes_by_participant(db, service) -> None:
    session = create_session(db)
    assert service.update_notes(Tutor(TUTOR_ID), session.id, "Bring calculator").notes == (
        "Bring calculator"
    )
    with pytest.raises(ForbiddenException):
        service.update_notes(Student(OTHER_STUDENT_ID), session.id, "x")
