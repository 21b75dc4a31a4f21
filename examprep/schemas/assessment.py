"""
Pydantic schemas for adaptive assessments.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from examprep.core.agents.assessment.schemas import DifficultyAnalysis, TopicPerformance
from examprep.models.adaptive_session import CompletionReason, SessionStatus
from examprep.models.question import Difficulty


class AdaptiveTestConfig(BaseModel):
    """Schema for creating an adaptive test session."""

    subject_id: int
    topic_id: Optional[int] = None
    subtopic_id: Optional[int] = None
    question_count: int = 10
    time_limit_minutes: int = 60
    starting_difficulty: Difficulty = Difficulty.MEDIUM
    adaptive_mode: bool = True

    @field_validator("topic_id", "subtopic_id", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v == "" or v == 0:
            return None
        return v

    @field_validator("starting_difficulty", mode="before")
    @classmethod
    def upper_difficulty(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class AnswerSubmit(BaseModel):
    """Schema for submitting the answer to the current question."""

    question_id: int
    selected_option_index: int
    time_spent: float = Field(0, description="Seconds spent on the question")


class QuestionView(BaseModel):
    """A session question as shown to the student.

    ``correct_answer`` and ``explanation`` are only filled in once the
    question has been answered.
    """

    id: int
    question: str
    options: List[str]
    difficulty: Difficulty
    topic_id: Optional[int] = None
    topic_name: Optional[str] = None
    subtopic_id: Optional[int] = None
    estimated_time: int
    is_ai_generated: bool = False
    correct_answer: Optional[int] = None
    explanation: Optional[str] = None


class AnswerRecord(BaseModel):
    question_id: int
    answer: int
    time_spent: float
    is_correct: bool
    difficulty: Difficulty
    timestamp: datetime


class DifficultyStep(BaseModel):
    question_index: int
    difficulty: Difficulty
    reason: str


class AdaptiveSessionResponse(BaseModel):
    """Schema for an adaptive session."""

    session_id: int
    user_id: int
    subject_id: int
    topic_id: Optional[int] = None
    subtopic_id: Optional[int] = None
    status: SessionStatus
    completion_reason: Optional[CompletionReason] = None
    adaptive_mode: bool
    starting_difficulty: Difficulty
    current_difficulty: Difficulty
    total_questions: int
    current_question_index: int
    current_question: Optional[QuestionView] = None
    questions: List[QuestionView]
    answers: List[AnswerRecord]
    difficulty_progression: List[DifficultyStep]
    estimated_score: int
    time_limit_seconds: int
    time_remaining: float
    started_at: datetime
    completed_at: Optional[datetime] = None


class SessionSummary(BaseModel):
    """Schema for a session in the history list."""

    session_id: int
    subject_id: int
    topic_id: Optional[int] = None
    status: SessionStatus
    completion_reason: Optional[CompletionReason] = None
    total_questions: int
    answered: int
    estimated_score: int
    time_remaining: float
    started_at: datetime
    completed_at: Optional[datetime] = None


class AnswerFeedback(BaseModel):
    question_id: int
    selected_option_index: int
    is_correct: bool
    correct_answer: int
    explanation: Optional[str] = None
    time_spent: float


class SubmitAnswerResponse(BaseModel):
    """Result of a submit; ``answer_recorded`` is False if time had already run out."""

    answer_recorded: bool
    feedback: Optional[AnswerFeedback] = None
    session: AdaptiveSessionResponse


class AssessmentResultResponse(BaseModel):
    """Schema for a completed session's result."""

    session_id: int
    user_id: int
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    unanswered: int
    score: int
    time_spent: float
    average_time_per_question: float
    difficulty_analysis: DifficultyAnalysis
    topic_performance: List[TopicPerformance]
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[str]
    next_steps: List[str]
    confidence_level: int
    completion_reason: Optional[CompletionReason] = None
    ai_insights: Optional[str] = None
    created_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class GenerateQuestionsRequest(BaseModel):
    """Schema for generating new bank questions with the LLM."""

    subject_id: int
    topic_id: Optional[int] = None
    subtopic_id: Optional[int] = None
    count: int = Field(5, ge=1, le=20)
    difficulty: Difficulty = Difficulty.MEDIUM

    @field_validator("topic_id", "subtopic_id", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v == "" or v == 0:
            return None
        return v


class GeneratedQuestionsResponse(BaseModel):
    count: int
    questions: List[QuestionView]


class PerformanceHistoryResponse(BaseModel):
    """Schema for the caller's recent performance across completed sessions."""

    questions_analyzed: int
    sessions_analyzed: int
    average_score: int
    difficulty_performance: DifficultyAnalysis
    topic_performance: List[TopicPerformance]
    recent_trend: str
