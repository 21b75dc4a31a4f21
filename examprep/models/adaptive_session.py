"""
Models for adaptive test sessions and their computed assessment results.
"""
import enum

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    Float,
    String,
    Text,
    JSON,
    DateTime,
    ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from examprep.db.base import Base
from examprep.models.question import Difficulty


class SessionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class CompletionReason(str, enum.Enum):
    ALL_ANSWERED = "ALL_ANSWERED"
    TIME_EXPIRED = "TIME_EXPIRED"
    USER_COMPLETED = "USER_COMPLETED"


class AdaptiveTestSession(Base):
    """
    One user's attempt at an adaptive test.

    Question snapshots, answers and the difficulty log are stored as JSON lists
    and always replaced wholesale so the ORM sees the change.
    """

    __tablename__ = "adaptive_test_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Scope
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="SET NULL"), nullable=True)
    subtopic_id = Column(Integer, ForeignKey("subtopics.id", ondelete="SET NULL"), nullable=True)

    question_count = Column(Integer, nullable=False)
    questions = Column(JSON, nullable=False, default=list)  # ordered question snapshots
    reserve_questions = Column(JSON, nullable=False, default=list)  # candidates for adaptation swaps
    current_question_index = Column(Integer, nullable=False, default=0)
    answers = Column(JSON, nullable=False, default=list)
    difficulty_progression = Column(JSON, nullable=False, default=list)
    estimated_score = Column(Integer, nullable=False, default=0)

    adaptive_mode = Column(Boolean, nullable=False, default=True)
    starting_difficulty = Column(SAEnum(Difficulty), nullable=False, default=Difficulty.MEDIUM)
    current_difficulty = Column(SAEnum(Difficulty), nullable=False, default=Difficulty.MEDIUM)

    # Timing: remaining budget at the start of the current active segment
    time_limit_seconds = Column(Integer, nullable=False)
    time_remaining_seconds = Column(Float, nullable=False)
    active_since = Column(DateTime(timezone=True), nullable=True)

    status = Column(SAEnum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE, index=True)
    completion_reason = Column(SAEnum(CompletionReason), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Optimistic lock counter, bumped by SQLAlchemy on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("User", back_populates="adaptive_sessions")
    result = relationship(
        "AssessmentResult", back_populates="session", uselist=False, cascade="all, delete-orphan"
    )


class AssessmentResult(Base):
    """
    Read-only summary computed once when a session completes.
    """

    __tablename__ = "assessment_results"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("adaptive_test_sessions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    incorrect_answers = Column(Integer, nullable=False)
    unanswered = Column(Integer, nullable=False, default=0)
    score = Column(Integer, nullable=False)  # percentage 0-100
    time_spent = Column(Float, nullable=False, default=0.0)  # seconds
    average_time_per_question = Column(Float, nullable=False, default=0.0)

    # {"easy": {"correct": 1, "total": 2}, "medium": {...}, "hard": {...}}
    difficulty_analysis = Column(JSON, nullable=False)
    # [{"topic_id": 1, "topic_name": "Kinematics", "score": 50, "questions": 2}, ...]
    topic_performance = Column(JSON, nullable=False)
    strengths = Column(JSON, nullable=False, default=list)
    weaknesses = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    next_steps = Column(JSON, nullable=False, default=list)
    confidence_level = Column(Integer, nullable=False, default=0)
    completion_reason = Column(String, nullable=True)

    # Optional free text from the LLM enrichment step
    ai_insights = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("AdaptiveTestSession", back_populates="result")
