from examprep.core.dependencies import get_current_active_user
from examprep.main import app

from .conftest import make_user

API = "/api/v1/assessments"


def create(client, bank, **overrides):
    body = {
        "subject_id": bank["subject"].id,
        "question_count": 5,
        "time_limit_minutes": 30,
        "starting_difficulty": "MEDIUM",
        "adaptive_mode": True,
    }
    body.update(overrides)
    return client.post(f"{API}/create-adaptive-test", json=body)


def answer(client, session, correct, time_spent=30):
    question = session["current_question"]
    return client.post(
        f"{API}/{session['session_id']}/submit-answer",
        json={
            "question_id": question["id"],
            "selected_option_index": 0 if correct else 1,
            "time_spent": time_spent,
        },
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["status"] == "healthy"


def test_create_hides_answers(client, bank):
    response = create(client, bank)

    assert response.status_code == 201
    session = response.json()
    assert session["status"] == "ACTIVE"
    assert session["total_questions"] == 5
    assert session["time_remaining"] == 1800
    assert len(session["questions"]) == 1
    assert session["current_question"]["correct_answer"] is None
    assert session["current_question"]["explanation"] is None
    assert session["difficulty_progression"][0]["reason"] == "starting difficulty"


def test_full_adaptive_flow(client, bank):
    session = create(client, bank).json()

    for correct in [True, True, False, True]:
        response = answer(client, session, correct)
        assert response.status_code == 200
        body = response.json()
        assert body["answer_recorded"] is True
        assert body["feedback"]["is_correct"] is correct
        assert body["feedback"]["correct_answer"] == 0
        session = body["session"]

    # Answered questions reveal their solution
    assert session["questions"][0]["correct_answer"] == 0
    assert session["current_question"]["correct_answer"] is None

    body = answer(client, session, True).json()
    session = body["session"]
    assert session["status"] == "COMPLETED"
    assert session["completion_reason"] == "ALL_ANSWERED"
    assert session["estimated_score"] == 80
    assert [s["difficulty"] for s in session["difficulty_progression"]] == [
        "MEDIUM", "MEDIUM", "HARD", "MEDIUM", "MEDIUM",
    ]

    result = client.get(f"{API}/{session['session_id']}/result")
    assert result.status_code == 200
    data = result.json()
    assert data["score"] == 80
    assert data["correct_answers"] == 4
    assert data["incorrect_answers"] == 1
    assert data["session_id"] == session["session_id"]
    assert data["difficulty_analysis"]["hard"] == {"correct": 0, "total": 1}


def test_poll_after_time_limit_completes_session(client, bank, clock):
    session = create(client, bank, question_count=10, time_limit_minutes=1).json()

    clock.advance(61)
    polled = client.get(f"{API}/{session['session_id']}").json()

    assert polled["status"] == "COMPLETED"
    assert polled["completion_reason"] == "TIME_EXPIRED"
    assert polled["time_remaining"] == 0

    result = client.get(f"{API}/{session['session_id']}/result").json()
    assert result["correct_answers"] == 0
    assert result["unanswered"] == 10
    assert result["score"] == 0


def test_submit_after_expiry_is_not_recorded(client, bank, clock):
    session = create(client, bank, time_limit_minutes=1).json()

    clock.advance(120)
    body = answer(client, session, True).json()

    assert body["answer_recorded"] is False
    assert body["feedback"] is None
    assert body["session"]["status"] == "COMPLETED"
    assert body["session"]["answers"] == []


def test_pause_resume_and_complete(client, bank, clock):
    session = create(client, bank, time_limit_minutes=1).json()
    session = answer(client, session, True).json()["session"]
    sid = session["session_id"]

    clock.advance(15)
    paused = client.post(f"{API}/{sid}/pause").json()
    assert paused["status"] == "PAUSED"
    assert paused["time_remaining"] == 45

    rejected = answer(client, paused, True)
    assert rejected.status_code == 409
    assert rejected.json()["code"] == "invalid_state"

    clock.advance(600)
    resumed = client.post(f"{API}/{sid}/resume").json()
    assert resumed["status"] == "ACTIVE"
    assert resumed["time_remaining"] == 45
    assert resumed["current_question_index"] == 1

    completed = client.post(f"{API}/{sid}/complete")
    assert completed.status_code == 200
    assert completed.json()["completion_reason"] == "USER_COMPLETED"
    assert completed.json()["unanswered"] == 4

    again = client.post(f"{API}/{sid}/complete").json()
    assert again == completed.json()


def test_error_responses(client, bank, db):
    bad = create(client, bank, question_count=0)
    assert bad.status_code == 400
    assert bad.json()["code"] == "invalid_config"

    missing_subject = create(client, bank, subject_id=9999)
    assert missing_subject.status_code == 400

    too_many = create(client, bank, topic_id=bank["optics"].id, question_count=50)
    assert too_many.status_code == 404
    assert too_many.json()["code"] == "no_questions_available"

    assert client.get(f"{API}/9999").json()["code"] == "session_not_found"

    session = create(client, bank).json()
    sid = session["session_id"]

    not_ready = client.get(f"{API}/{sid}/result")
    assert not_ready.status_code == 409

    stale = client.post(
        f"{API}/{sid}/submit-answer",
        json={"question_id": -1, "selected_option_index": 0, "time_spent": 5},
    )
    assert stale.status_code == 409
    assert stale.json()["code"] == "stale_question"

    out_of_range = client.post(
        f"{API}/{sid}/submit-answer",
        json={"question_id": session["current_question"]["id"], "selected_option_index": 9},
    )
    assert out_of_range.status_code == 400
    assert out_of_range.json()["code"] == "invalid_answer"

    invalid_body = client.post(f"{API}/{sid}/submit-answer", json={"question_id": "x"})
    assert invalid_body.status_code == 422

    stranger = make_user(db, "meera@example.com", "meera")
    client.current["user_id"] = stranger.id
    forbidden = client.get(f"{API}/{sid}")
    assert forbidden.status_code == 403
    assert forbidden.json() == {"detail": "You do not own this test session", "code": "not_owner"}


def test_list_and_performance(client, bank):
    first = create(client, bank, question_count=2).json()
    for _ in range(2):
        first = answer(client, first, True).json()["session"]
    create(client, bank)

    listed = client.get(API).json()
    assert len(listed) == 2
    assert listed[1]["session_id"] == first["session_id"]
    assert listed[1]["status"] == "COMPLETED"
    assert listed[1]["answered"] == 2
    assert listed[0]["status"] == "ACTIVE"

    performance = client.get(f"{API}/performance").json()
    assert performance["questions_analyzed"] == 2
    assert performance["average_score"] == 100
    assert performance["recent_trend"] == "STABLE"


def test_generate_questions_requires_llm(client, bank):
    response = client.post(
        f"{API}/generate-questions",
        json={"subject_id": bank["subject"].id, "count": 3, "difficulty": "HARD"},
    )
    assert response.status_code == 503


def test_auth_flow(client, db):
    app.dependency_overrides.pop(get_current_active_user)

    registered = client.post(
        "/api/v1/auth/register",
        json={"email": "kabir@example.com", "username": "kabir", "full_name": "Kabir", "password": "s3cret-pass"},
    )
    assert registered.status_code == 201

    duplicate = client.post(
        "/api/v1/auth/register",
        json={"email": "kabir@example.com", "username": "other", "full_name": "K", "password": "x"},
    )
    assert duplicate.status_code == 400

    bad_login = client.post("/api/v1/auth/login", data={"username": "kabir", "password": "wrong"})
    assert bad_login.status_code == 401

    login = client.post("/api/v1/auth/login", data={"username": "kabir", "password": "s3cret-pass"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "kabir@example.com"

    assert client.get(API).status_code == 401
    listed = client.get(API, headers={"Authorization": f"Bearer {token}"})
    assert listed.status_code == 200
    assert listed.json() == []
