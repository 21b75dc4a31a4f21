"""Models module - Import all models here for Alembic."""
from examprep.db.base import Base
from examprep.models.user import User
from examprep.models.question import Difficulty, Subject, Topic, Subtopic, Question, QuestionOption
from examprep.models.adaptive_session import (
    AdaptiveTestSession,
    AssessmentResult,
    CompletionReason,
    SessionStatus,
)

__all__ = [
    "Base",
    "User",
    "Difficulty",
    "Subject",
    "Topic",
    "Subtopic",
    "Question",
    "QuestionOption",
    "AdaptiveTestSession",
    "AssessmentResult",
    "CompletionReason",
    "SessionStatus",
]
