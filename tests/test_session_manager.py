import pytest
from sqlalchemy import text

from examprep.core.agents.assessment import InsightGenerator
from examprep.core.agents.assessment.schemas import InsightOutput
from examprep.core.exceptions import (
    ConcurrentUpdateError,
    InvalidAnswerError,
    InvalidConfigError,
    InvalidStateError,
    NoQuestionsAvailableError,
    NotOwnerError,
    SessionNotFoundError,
    StaleQuestionError,
)
from examprep.models import CompletionReason, Difficulty, SessionStatus, Subject, Topic
from examprep.schemas.assessment import AdaptiveTestConfig
from examprep.services.adaptive_session import AdaptiveSessionManager

from .conftest import FakeLLM, add_question


def config(bank, **overrides):
    values = {
        "subject_id": bank["subject"].id,
        "question_count": 5,
        "time_limit_minutes": 30,
        "starting_difficulty": Difficulty.MEDIUM,
        "adaptive_mode": True,
    }
    values.update(overrides)
    return AdaptiveTestConfig(**values)


def submit(manager, session, user, correct, time_spent=30):
    question = session.questions[session.current_question_index]
    return manager.submit_answer(
        session.id, user.id, question["id"], 0 if correct else 1, time_spent
    )


def test_create_session(manager, bank, user):
    session = manager.create_session(user.id, config(bank))

    assert session.status == SessionStatus.ACTIVE
    assert session.current_question_index == 0
    assert len(session.questions) == 5
    assert all(q["difficulty"] == "MEDIUM" for q in session.questions)
    assert len({q["id"] for q in session.questions}) == 5
    assert session.estimated_score == 0
    assert session.answers == []
    assert session.difficulty_progression == [
        {"question_index": 0, "difficulty": "MEDIUM", "reason": "starting difficulty"}
    ]
    assert manager.time_remaining(session) == 30 * 60
    # Reserve never repeats a selected question
    selected = {q["id"] for q in session.questions}
    assert not selected & {q["id"] for q in session.reserve_questions}


def test_five_question_adaptive_scenario(manager, bank, user):
    session = manager.create_session(user.id, config(bank))

    for correct in [True, True, False, True, True]:
        session, feedback = submit(manager, session, user, correct)
        assert feedback["is_correct"] is correct

    assert session.status == SessionStatus.COMPLETED
    assert session.completion_reason == CompletionReason.ALL_ANSWERED
    assert [step["difficulty"] for step in session.difficulty_progression] == [
        "MEDIUM", "MEDIUM", "HARD", "MEDIUM", "MEDIUM",
    ]
    assert [a["difficulty"] for a in session.answers] == [
        "MEDIUM", "MEDIUM", "HARD", "MEDIUM", "MEDIUM",
    ]
    # The swapped-in questions match the chosen tiers
    assert [q["difficulty"] for q in session.questions] == [
        "MEDIUM", "MEDIUM", "HARD", "MEDIUM", "MEDIUM",
    ]
    assert session.difficulty_progression[2]["reason"] == "two consecutive correct answers"
    assert session.difficulty_progression[3]["reason"] == "incorrect answer"
    assert session.estimated_score == 80

    result = session.result
    assert result.score == 80
    assert result.correct_answers == 4
    assert result.incorrect_answers == 1
    assert result.total_questions == 5


def test_estimated_score_tracks_answers(manager, bank, user):
    session = manager.create_session(user.id, config(bank))

    session, _ = submit(manager, session, user, True)
    assert session.estimated_score == 100
    session, _ = submit(manager, session, user, False)
    assert session.estimated_score == 50
    session, _ = submit(manager, session, user, False)
    assert session.estimated_score == 33
    assert session.current_question_index == 3


def test_timeout_scenario(manager, bank, user, clock):
    session = manager.create_session(
        user.id, config(bank, question_count=10, time_limit_minutes=1)
    )

    clock.advance(60)
    session = manager.get_session(session.id, user.id)

    assert session.status == SessionStatus.COMPLETED
    assert session.completion_reason == CompletionReason.TIME_EXPIRED
    assert manager.time_remaining(session) == 0
    result = session.result
    assert result.correct_answers == 0
    assert result.unanswered == 10
    assert result.score == 0
    assert result.completion_reason == "TIME_EXPIRED"


def test_submit_after_expiry_completes_without_recording(manager, bank, user, clock):
    session = manager.create_session(user.id, config(bank, time_limit_minutes=1))
    session, _ = submit(manager, session, user, True)

    clock.advance(90)
    session, feedback = submit(manager, session, user, True)

    assert feedback is None
    assert session.status == SessionStatus.COMPLETED
    assert session.completion_reason == CompletionReason.TIME_EXPIRED
    assert len(session.answers) == 1
    assert session.result.correct_answers == 1
    assert session.result.score == 20


def test_time_spent_is_clamped_to_remaining_budget(manager, bank, user, clock):
    session = manager.create_session(user.id, config(bank, time_limit_minutes=1))

    session, feedback = submit(manager, session, user, True, time_spent=500)
    assert feedback["time_spent"] == 60

    clock.advance(20)
    session, feedback = submit(manager, session, user, True, time_spent=-5)
    assert feedback["time_spent"] == 0
    assert [a["time_spent"] for a in session.answers] == [60, 0]


def test_pause_and_resume_preserve_progress(manager, bank, user, clock):
    session = manager.create_session(user.id, config(bank, time_limit_minutes=1))
    session, _ = submit(manager, session, user, True)
    answers_before = list(session.answers)

    clock.advance(10)
    session = manager.pause_session(session.id, user.id)
    assert session.status == SessionStatus.PAUSED
    assert manager.time_remaining(session) == 50

    # Paused sessions never expire
    clock.advance(1000)
    session = manager.get_session(session.id, user.id)
    assert session.status == SessionStatus.PAUSED
    assert manager.time_remaining(session) == 50

    session = manager.resume_session(session.id, user.id)
    assert session.status == SessionStatus.ACTIVE
    assert session.answers == answers_before
    assert session.current_question_index == 1
    assert session.estimated_score == 100

    clock.advance(20)
    assert manager.time_remaining(session) == 30


def test_submit_while_paused_is_rejected(manager, bank, user):
    session = manager.create_session(user.id, config(bank))
    manager.pause_session(session.id, user.id)

    with pytest.raises(InvalidStateError):
        submit(manager, session, user, True)

    session = manager.get_session(session.id, user.id)
    assert session.answers == []
    assert session.current_question_index == 0


def test_invalid_transitions(manager, bank, user):
    session = manager.create_session(user.id, config(bank))

    with pytest.raises(InvalidStateError):
        manager.resume_session(session.id, user.id)

    manager.pause_session(session.id, user.id)
    with pytest.raises(InvalidStateError):
        manager.pause_session(session.id, user.id)

    manager.complete_session(session.id, user.id)
    with pytest.raises(InvalidStateError):
        manager.resume_session(session.id, user.id)
    with pytest.raises(InvalidStateError):
        submit(manager, session, user, True)


def test_complete_is_idempotent(manager, bank, user):
    session = manager.create_session(user.id, config(bank))
    submit(manager, session, user, True)

    first = manager.complete_session(session.id, user.id)
    second = manager.complete_session(session.id, user.id, CompletionReason.TIME_EXPIRED)

    assert first.id == second.id
    assert second.completion_reason == "USER_COMPLETED"
    assert first.correct_answers == 1
    assert first.incorrect_answers == 4
    assert first.unanswered == 4
    assert first.score == 20


def test_paused_session_can_be_completed(manager, bank, user):
    session = manager.create_session(user.id, config(bank))
    manager.pause_session(session.id, user.id)

    result = manager.complete_session(session.id, user.id)

    assert result.completion_reason == "USER_COMPLETED"
    assert result.score == 0


def test_result_requires_completion(manager, bank, user):
    session = manager.create_session(user.id, config(bank))

    with pytest.raises(InvalidStateError):
        manager.get_result(session.id, user.id)

    manager.complete_session(session.id, user.id)
    assert manager.get_result(session.id, user.id).total_questions == 5


def test_stale_question_and_invalid_answer(manager, bank, user):
    session = manager.create_session(user.id, config(bank))
    current = session.questions[0]
    upcoming = session.questions[1]

    with pytest.raises(StaleQuestionError):
        manager.submit_answer(session.id, user.id, upcoming["id"], 0, 10)

    with pytest.raises(InvalidAnswerError):
        manager.submit_answer(session.id, user.id, current["id"], 4, 10)

    with pytest.raises(InvalidAnswerError):
        manager.submit_answer(session.id, user.id, current["id"], -1, 10)

    session = manager.get_session(session.id, user.id)
    assert session.answers == []


def test_ownership_and_missing_sessions(manager, bank, user, other_user):
    session = manager.create_session(user.id, config(bank))

    with pytest.raises(NotOwnerError):
        manager.get_session(session.id, other_user.id)
    with pytest.raises(NotOwnerError):
        manager.pause_session(session.id, other_user.id)
    with pytest.raises(SessionNotFoundError):
        manager.get_session(session.id + 100, user.id)


def test_invalid_configs(manager, bank, user):
    with pytest.raises(InvalidConfigError):
        manager.create_session(user.id, config(bank, question_count=0))
    with pytest.raises(InvalidConfigError):
        manager.create_session(user.id, config(bank, time_limit_minutes=0))
    with pytest.raises(InvalidConfigError):
        manager.create_session(user.id, config(bank, subject_id=9999))
    # Optics holds 6 questions in total
    with pytest.raises(NoQuestionsAvailableError):
        manager.create_session(user.id, config(bank, topic_id=bank["optics"].id, question_count=7))


def test_adaptive_mode_off_keeps_difficulty(manager, bank, user):
    session = manager.create_session(
        user.id, config(bank, starting_difficulty=Difficulty.EASY, adaptive_mode=False)
    )
    assert session.reserve_questions == []

    for _ in range(4):
        session, _ = submit(manager, session, user, True)

    assert [q["difficulty"] for q in session.questions] == ["EASY"] * 5
    assert [step["difficulty"] for step in session.difficulty_progression] == ["EASY"] * 5
    assert session.difficulty_progression[1]["reason"] == "adaptive mode disabled"


def test_adaptation_without_matching_question_keeps_slot(db, manager, user):
    chemistry = Subject(name="Chemistry")
    db.add(chemistry)
    db.commit()
    organic = Topic(subject_id=chemistry.id, name="Organic")
    db.add(organic)
    db.commit()
    for _ in range(3):
        add_question(db, organic, Difficulty.MEDIUM)

    session = manager.create_session(
        user.id,
        AdaptiveTestConfig(subject_id=chemistry.id, question_count=3, starting_difficulty="MEDIUM"),
    )
    session, _ = submit(manager, session, user, True)
    session, _ = submit(manager, session, user, True)

    step = session.difficulty_progression[2]
    assert step["difficulty"] == "HARD"
    assert "no HARD question left, keeping a MEDIUM question" in step["reason"]
    assert session.questions[2]["difficulty"] == "MEDIUM"
    assert session.current_difficulty == Difficulty.HARD


def test_list_sessions_applies_expiry(manager, bank, user, other_user, clock):
    first = manager.create_session(user.id, config(bank, time_limit_minutes=1))
    clock.advance(5)
    second = manager.create_session(user.id, config(bank, time_limit_minutes=10))
    manager.create_session(other_user.id, config(bank))

    clock.advance(120)
    sessions = manager.list_sessions(user.id)

    assert [s.id for s in sessions] == [second.id, first.id]
    assert sessions[1].status == SessionStatus.COMPLETED
    assert sessions[1].completion_reason == CompletionReason.TIME_EXPIRED
    assert sessions[0].status == SessionStatus.ACTIVE


def test_concurrent_update_is_detected(db, manager, bank, user, monkeypatch):
    session = manager.create_session(user.id, config(bank))
    original = manager._adapt_next

    def adapt_and_race(s):
        original(s)
        # Another writer bumps the version behind this request's back
        db.connection().execute(
            text("UPDATE adaptive_test_sessions SET version = version + 1 WHERE id = :id"),
            {"id": s.id},
        )

    monkeypatch.setattr(manager, "_adapt_next", adapt_and_race)

    with pytest.raises(ConcurrentUpdateError):
        submit(manager, session, user, True)

    monkeypatch.undo()
    session = manager.get_session(session.id, user.id)
    assert session.answers == []


def test_ai_insights_are_attached_when_enabled(db, question_source, bank, user, clock):
    llm = FakeLLM(structured=InsightOutput(summary="Solid start.", recommendations=["Practise optics"]))
    manager = AdaptiveSessionManager(
        db,
        question_source=question_source,
        insight_generator_factory=lambda: InsightGenerator(llm=llm),
        insights_enabled=True,
        clock=clock,
    )
    session = manager.create_session(user.id, config(bank, question_count=2))
    submit(manager, session, user, True)
    session, _ = submit(manager, session, user, False)

    assert session.result.ai_insights == "Solid start.\n- Practise optics"
    assert len(llm.calls) == 1


def test_ai_insight_failure_does_not_block_completion(db, question_source, bank, user, clock):
    llm = FakeLLM(error=RuntimeError("rate limited"))
    manager = AdaptiveSessionManager(
        db,
        question_source=question_source,
        insight_generator_factory=lambda: InsightGenerator(llm=llm),
        insights_enabled=True,
        clock=clock,
    )
    session = manager.create_session(user.id, config(bank, question_count=2))

    result = manager.complete_session(session.id, user.id)

    assert result.ai_insights is None
    assert result.score == 0
