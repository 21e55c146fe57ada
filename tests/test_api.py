import pytest
from fastapi.testclient import TestClient

from review_engine.main import create_app


@pytest.fixture
def client(engine):
    app = create_app(engine, run_background=False)
    with TestClient(app) as test_client:
        yield test_client


def _add_card(client, vocabulary_id: str = "vocab-1") -> dict:
    response = client.post(
        "/api/learners/learner-1/cards",
        json={"vocabulary_id": vocabulary_id, "text": "serendipity", "translation": "偶然の幸運"},
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers.get("x-request-id")


def test_review_flow(client):
    card = _add_card(client)
    assert card["status"] == "new"

    due = client.get("/api/learners/learner-1/due").json()
    assert due["count"] == 1

    started = client.post("/api/learners/learner-1/sessions", json={"session_type": "manual"})
    assert started.status_code == 200
    session = started.json()
    assert session["current_card"]["id"] == card["id"]
    assert session["remaining"] == 1

    answered = client.post(
        f"/api/sessions/{session['id']}/responses",
        json={"card_id": card["id"], "assessment": "good", "response_time": 2100},
    )
    assert answered.status_code == 200
    body = answered.json()
    assert body["state"] == "completed"
    assert body["end_reason"] == "exhausted"
    assert body["answered"] == 1

    fetched = client.get(f"/api/learners/learner-1/cards/{card['id']}").json()
    assert fetched["interval"] == 1
    assert fetched["status"] == "learning"

    history = client.get("/api/learners/learner-1/sessions/history").json()
    assert [item["id"] for item in history] == [session["id"]]


def test_start_session_without_body_defaults_to_manual(client):
    _add_card(client)

    response = client.post("/api/learners/learner-1/sessions")

    assert response.status_code == 200
    assert response.json()["session_type"] == "manual"


def test_second_session_conflicts(client):
    _add_card(client)
    assert client.post("/api/learners/learner-1/sessions").status_code == 200

    response = client.post("/api/learners/learner-1/sessions")

    assert response.status_code == 409
    assert response.json()["error"] == "ConflictError"


def test_out_of_order_answer_conflicts(client):
    _add_card(client, "vocab-1")
    _add_card(client, "vocab-2")
    session = client.post("/api/learners/learner-1/sessions").json()
    head = session["current_card"]["id"]
    cards = client.get("/api/learners/learner-1/due").json()["items"]
    other = next(item["id"] for item in cards if item["id"] != head)

    response = client.post(
        f"/api/sessions/{session['id']}/responses",
        json={"card_id": other, "assessment": "good", "response_time": 1000},
    )

    assert response.status_code == 409


def test_unknown_session_is_404(client):
    response = client.get("/api/sessions/session_missing")

    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


def test_invalid_assessment_is_422(client):
    card = _add_card(client)
    session = client.post("/api/learners/learner-1/sessions").json()

    response = client.post(
        f"/api/sessions/{session['id']}/responses",
        json={"card_id": card["id"], "assessment": "perfect", "response_time": 1000},
    )

    assert response.status_code == 422


def test_config_update_and_notifications(client):
    _add_card(client)

    patched = client.patch(
        "/api/learners/learner-1/config",
        json={"notifications": {"frequency": "low"}},
    )
    assert patched.status_code == 200
    assert patched.json()["notifications"]["frequency"] == "low"

    scheduled = client.post("/api/learners/learner-1/notifications/schedule")
    assert scheduled.status_code == 200
    assert len(scheduled.json()) == 2

    delivery = client.post(
        "/api/learners/learner-1/notifications/delivery",
        json={"responded": True},
    )
    assert delivery.status_code == 200
    assert delivery.json()["activity"]["response_rate"] == pytest.approx(0.8)


def test_reminder_response_starts_scheduled_session(client):
    _add_card(client)

    delivery = client.post(
        "/api/learners/learner-1/notifications/delivery",
        json={"responded": True, "start_review": True},
    )

    assert delivery.status_code == 200
    active = client.get("/api/learners/learner-1/sessions/active").json()
    assert active["session_type"] == "scheduled"


def test_invalid_config_is_422(client):
    _add_card(client)

    response = client.patch("/api/learners/learner-1/config", json={"timezone": "Nowhere/Land"})

    assert response.status_code == 422


def test_statistics_and_calendar(client):
    _add_card(client)

    stats = client.get("/api/learners/learner-1/statistics")
    calendar = client.get("/api/learners/learner-1/calendar", params={"year": 2024, "month": 1})

    assert stats.status_code == 200
    assert stats.json()["total_cards"] == 1
    assert calendar.status_code == 200
    assert calendar.json() == {}


def test_active_session_endpoint(client):
    assert client.get("/api/learners/learner-1/sessions/active").json() is None

    _add_card(client)
    session = client.post("/api/learners/learner-1/sessions").json()

    active = client.get("/api/learners/learner-1/sessions/active").json()
    assert active["id"] == session["id"]

    abandoned = client.post(f"/api/sessions/{session['id']}/abandon").json()
    assert abandoned["end_reason"] == "abandoned"
    assert client.get("/api/learners/learner-1/sessions/active").json() is None
