from tests.factories import STUDENT_ID, TUTOR_ID, create_request, future_slot


def _request_body(start, end, **overrides):
    body = {
        "tutorId": TUTOR_ID,
        "subject": "Physics",
        "title": "Kinematics",
        "requestedStartTime": start.isoformat(),
        "requestedEndTime": end.isoformat(),
        "mode": "offline",
        "location": "  Central Library  ",
        "proposedPrice": "35.00",
    }
    body.update(overrides)
    return body


def test_request_accept_books_session(client, auth_headers, profiles) -> None:
    start, end = future_slot(days=3)
    student = auth_headers(STUDENT_ID, "student")
    tutor = auth_headers(TUTOR_ID, "tutor")

    created = client.post("/api/v1/session-requests", json=_request_body(start, end), headers=student)
    assert created.status_code == 201
    request = created.json()["data"]["request"]
    assert request["status"] == "pending"
    assert request["location"] == "Central Library"

    accepted = client.patch(
        f"/api/v1/session-requests/{request['id']}/accept",
        json={"tutorResponse": "See you there"},
        headers=tutor,
    )
    assert accepted.status_code == 200
    data = accepted.json()["data"]
    assert data["request"]["status"] == "accepted"
    assert data["request"]["sessionId"] == data["session"]["id"]
    assert data["session"]["price"] == 35.0
    assert data["session"]["sessionRequestId"] == request["id"]

    sessions = client.get("/api/v1/sessions", headers=student).json()["data"]
    assert sessions["pagination"]["total"] == 1


def test_student_cannot_accept(client, auth_headers, db, profiles) -> None:
    request = create_request(db)
    response = client.patch(
        f"/api/v1/session-requests/{request.id}/accept", headers=auth_headers(STUDENT_ID, "student")
    )
    assert response.status_code == 403


def test_decline_requires_reason(client, auth_headers, db, profiles) -> None:
    request = create_request(db)
    tutor = auth_headers(TUTOR_ID, "tutor")

    missing = client.patch(
        f"/api/v1/session-requests/{request.id}/decline", json={}, headers=tutor
    )
    assert missing.status_code == 400

    declined = client.patch(
        f"/api/v1/session-requests/{request.id}/decline",
        json={"declineReason": "Fully booked that week"},
        headers=tutor,
    )
    assert declined.status_code == 200
    assert declined.json()["data"]["request"]["declineReason"] == "Fully booked that week"


def test_stats_count_by_status(client, auth_headers, db, profiles) -> None:
    create_request(db)
    response = client.get("/api/v1/session-requests/stats", headers=auth_headers(TUTOR_ID, "tutor"))
    assert response.status_code == 200
    assert response.json()["data"]["pending"] == 1
