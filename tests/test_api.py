from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from main import app
from app.core.config import Settings
from app.infrastructure.security.jwt_service import create_access_token
from app.presentation.dependencies import get_clock, get_db, get_settings


@pytest.fixture
def api_settings():
    settings = Settings()
    settings.IDENTITY_MODE = "anonymous"
    settings.ATTEMPT_POLICY = "unlimited"
    return settings


@pytest.fixture
def client(session_factory, clock, api_settings):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: api_settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _auth(user_id, role="USER"):
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


def test_full_exam_flow(client, make_exam, question_ids, clock):
    exam = make_exam(duration=10, opens=timedelta(0), closes=timedelta(hours=1),
                     questions=[("True", "true_false", 1), ("Paris", "fill_blank", 1)])
    q1, q2 = question_ids(exam.id)

    response = client.post(f"/api/exams/{exam.id}/start", json={"student_name": "Lin"})
    assert response.status_code == 201
    attempt = response.json()
    assert attempt["time_remaining_at_start"] == 600
    assert attempt["student_name"] == "Lin"
    assert attempt["student_email"] == "student@example.com"

    response = client.post(f"/api/attempts/{attempt['id']}/answers", json={"question_id": q1, "user_answer": "True"})
    assert response.status_code == 200
    assert response.json()["is_correct"] is None

    response = client.post(
        f"/api/attempts/{attempt['id']}/answers",
        json={"question_id": q2, "user_answer": "Rome", "is_marked_for_review": True},
    )
    assert response.status_code == 200

    clock.advance(minutes=2)
    status = client.get(f"/api/attempts/{attempt['id']}").json()
    assert status["time_remaining"] == 480

    response = client.post(f"/api/attempts/{attempt['id']}/submit")
    assert response.status_code == 200
    body = response.json()
    assert body["score"] == 1
    assert body["percentage"] == 50
    assert body["attempt"]["is_submitted"] is True
    assert [row["correct_answer"] for row in body["results"]] == ["True", "Paris"]

    response = client.post(f"/api/attempts/{attempt['id']}/submit")
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "already_submitted"
    assert detail["attempt"] == body["attempt"]

    response = client.post(f"/api/attempts/{attempt['id']}/time-up")
    assert response.status_code == 200
    assert response.json()["score"] == 1

    response = client.post(f"/api/attempts/{attempt['id']}/answers", json={"question_id": q1, "user_answer": "False"})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "submission_locked"

    answers = client.get(f"/api/attempts/{attempt['id']}/answers").json()
    assert {a["question_id"]: a["is_correct"] for a in answers} == {q1: True, q2: False}


def test_start_errors_map_to_400(client, make_exam):
    inactive = make_exam(is_active=False)
    future = make_exam(opens=timedelta(hours=1), closes=timedelta(hours=2))
    past = make_exam(opens=timedelta(hours=-2), closes=timedelta(hours=-1))

    codes = {
        exam.id: client.post(f"/api/exams/{exam.id}/start").json()["detail"]["code"]
        for exam in (inactive, future, past)
    }

    assert codes == {
        inactive.id: "exam_unavailable",
        future.id: "exam_not_started",
        past.id: "exam_ended",
    }
    assert client.post(f"/api/exams/{past.id}/start").status_code == 400


def test_anonymous_listing_does_not_expose_other_students(client, make_exam):
    exam = make_exam()
    alice = client.post(f"/api/exams/{exam.id}/start", json={"student_name": "Alice", "student_email": "a@x"}).json()

    response = client.get("/api/attempts")

    assert response.status_code == 200
    assert response.json() == []
    assert alice["id"] not in response.text


def test_results_before_submission(client, make_exam):
    exam = make_exam()
    attempt = client.post(f"/api/exams/{exam.id}/start").json()

    response = client.get(f"/api/attempts/{attempt['id']}/results")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "not_yet_submitted"


def test_unknown_attempt_is_404(client):
    response = client.post("/api/attempts/does-not-exist/submit")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "attempt_not_found"


def test_malformed_answer_is_422(client, make_exam, question_ids):
    exam = make_exam()
    (q1,) = question_ids(exam.id)
    attempt = client.post(f"/api/exams/{exam.id}/start").json()

    non_string = client.post(f"/api/attempts/{attempt['id']}/answers", json={"question_id": q1, "user_answer": 5})
    unknown_question = client.post(f"/api/attempts/{attempt['id']}/answers", json={"question_id": 99999, "user_answer": "A"})

    assert non_string.status_code == 422
    assert unknown_question.status_code == 422
    assert unknown_question.json()["detail"]["code"] == "validation_error"


def test_listing_exam_attempts_needs_an_admin(client, make_exam):
    exam = make_exam()
    client.post(f"/api/exams/{exam.id}/start")

    assert client.get(f"/api/exams/{exam.id}/attempts").status_code == 401
    assert client.get(f"/api/exams/{exam.id}/attempts", headers=_auth(3)).status_code == 403

    response = client.get(f"/api/exams/{exam.id}/attempts", headers=_auth(1, role="ADMIN"))
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_invalid_token_is_rejected(client, make_exam):
    exam = make_exam()

    response = client.post(f"/api/exams/{exam.id}/start", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


def test_authenticated_single_attempt_mode(client, api_settings, make_exam):
    api_settings.IDENTITY_MODE = "authenticated"
    api_settings.ATTEMPT_POLICY = "single"
    exam = make_exam()

    assert client.post(f"/api/exams/{exam.id}/start").status_code == 401

    first = client.post(f"/api/exams/{exam.id}/start", headers=_auth(11)).json()
    again = client.post(f"/api/exams/{exam.id}/start", headers=_auth(11)).json()
    assert again["id"] == first["id"]
    assert first["user_id"] == "11"

    assert client.get(f"/api/attempts/{first['id']}", headers=_auth(12)).status_code == 404
    assert client.post(f"/api/attempts/{first['id']}/submit", headers=_auth(11)).status_code == 200

    response = client.post(f"/api/exams/{exam.id}/start", headers=_auth(11))
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "attempt_limit_reached"

    mine = client.get("/api/attempts", headers=_auth(11)).json()
    assert [a["id"] for a in mine] == [first["id"]]
