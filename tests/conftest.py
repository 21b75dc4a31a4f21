import os

# Must be set before examprep.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["OPENAI_API_KEY"] = ""
os.environ["AI_QUESTION_GENERATION_ENABLED"] = "false"
os.environ["AI_INSIGHTS_ENABLED"] = "false"
os.environ["BACKEND_CORS_ORIGINS"] = "*"

import random
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from examprep.core.dependencies import get_clock, get_current_active_user, get_question_source
from examprep.db.base import SessionLocal, engine, get_db
from examprep.main import app
from examprep.models import Base, Difficulty, Question, QuestionOption, Subject, Subtopic, Topic, User
from examprep.services.adaptive_session import AdaptiveSessionManager
from examprep.services.question_source import QuestionSource


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class FakeMessage:
    def __init__(self, content):
        self.content = content


class FakeLLM:
    """Returns canned responses; raises if ``error`` is set."""

    def __init__(self, content="", error=None, structured=None):
        self.content = content
        self.error = error
        self.structured = structured
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.structured if self.structured is not None else FakeMessage(self.content)

    def with_structured_output(self, schema):
        return self


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


def make_user(db, email, username):
    user = User(
        email=email,
        username=username,
        full_name=username.title(),
        hashed_password="not-used",
        role="student",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return make_user(db, "asha@example.com", "asha")


@pytest.fixture
def other_user(db):
    return make_user(db, "ravi@example.com", "ravi")


def add_question(db, topic, difficulty, stem=None, correct=0, estimated_time=60, subtopic=None):
    question = Question(
        topic_id=topic.id,
        subtopic_id=subtopic.id if subtopic else None,
        stem=stem or f"{topic.name} {difficulty.value} question",
        explanation="Because.",
        difficulty=difficulty,
        estimated_time=estimated_time,
        is_active=True,
    )
    question.options = [
        QuestionOption(text=f"Option {i}", is_correct=(i == correct), option_order=i)
        for i in range(4)
    ]
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


@pytest.fixture
def bank(db):
    """Physics with two topics; Kinematics has 10 questions per tier, Optics 2."""
    physics = Subject(name="Physics")
    db.add(physics)
    db.commit()

    kinematics = Topic(subject_id=physics.id, name="Kinematics")
    optics = Topic(subject_id=physics.id, name="Optics")
    db.add_all([kinematics, optics])
    db.commit()

    projectile = Subtopic(topic_id=kinematics.id, name="Projectile motion")
    db.add(projectile)
    db.commit()

    for difficulty in Difficulty:
        for i in range(10):
            add_question(db, kinematics, difficulty, stem=f"Kinematics {difficulty.value} #{i}")
        for i in range(2):
            add_question(db, optics, difficulty, stem=f"Optics {difficulty.value} #{i}")

    return {"subject": physics, "kinematics": kinematics, "optics": optics, "projectile": projectile}


@pytest.fixture
def question_source(db):
    return QuestionSource(db, ai_enabled=False, rng=random.Random(7))


@pytest.fixture
def manager(db, question_source, clock):
    return AdaptiveSessionManager(
        db, question_source=question_source, insights_enabled=False, clock=clock
    )


@pytest.fixture
def client(db, user, clock):
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    current = {"user_id": user.id}

    def override_current_user(session: Session = Depends(get_db)):
        return session.query(User).filter(User.id == current["user_id"]).first()

    def override_question_source(session: Session = Depends(get_db)):
        return QuestionSource(session, ai_enabled=False, rng=random.Random(7))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_active_user] = override_current_user
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_question_source] = override_question_source

    with TestClient(app) as test_client:
        test_client.current = current
        yield test_client

    app.dependency_overrides.clear()
