from studysphere.models.payment import PaymentStatus
from studysphere.models.session_request import SessionRequestStatus
from studysphere.repositories.factory import RepositoryFactory
from tests.factories import TUTOR_ID, create_payment, create_request, create_session


def test_booking_version_compare_and_swap(db, profiles) -> None:
    repository = RepositoryFactory.create_profile_repository(db)
    version = repository.get_booking_version(TUTOR_ID)

    assert repository.bump_booking_version(TUTOR_ID, version) is True
    assert repository.bump_booking_version(TUTOR_ID, version) is False
    db.commit()
    assert repository.get_booking_version(TUTOR_ID) == version + 1


def test_booking_version_of_unknown_tutor(db) -> None:
    repository = RepositoryFactory.create_profile_repository(db)
    assert repository.get_booking_version("nobody") is None
    assert repository.bump_booking_version("nobody", 0) is False


def test_request_leaves_pending_once(db, profiles) -> None:
    request = create_request(db)
    repository = RepositoryFactory.create_session_request_repository(db)

    assert repository.transition_from_pending(
        request.id, status=SessionRequestStatus.DECLINED.value
    )
    assert not repository.transition_from_pending(
        request.id, status=SessionRequestStatus.ACCEPTED.value
    )
    db.commit()
    db.refresh(request)
    assert request.status == SessionRequestStatus.DECLINED.value


def test_latest_payment_prefers_live_entry(db, profiles) -> None:
    session = create_session(db)
    failed = create_payment(db, session, status=PaymentStatus.FAILED.value)
    repository = RepositoryFactory.create_payment_repository(db)

    assert repository.get_latest_for_session(session.id).id == failed.id

    live = create_payment(
        db,
        session,
        status=PaymentStatus.PENDING.value,
        gateway_order_id="order_test_2",
        gateway_payment_id=None,
    )
    assert repository.get_latest_for_session(session.id).id == live.id
    assert repository.get_by_gateway_order_id("order_test_2").id == live.id
