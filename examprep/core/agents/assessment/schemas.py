"""
Pydantic schemas for the adaptive assessment agents.
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class TierStats(BaseModel):
    """Correct/total counts for one difficulty tier."""
    correct: int = 0
    total: int = 0


class DifficultyAnalysis(BaseModel):
    easy: TierStats = Field(default_factory=TierStats)
    medium: TierStats = Field(default_factory=TierStats)
    hard: TierStats = Field(default_factory=TierStats)


class TopicPerformance(BaseModel):
    """Score for a single topic."""
    topic_id: Optional[int] = None
    topic_name: str
    score: int
    questions: int


class AssessmentReport(BaseModel):
    """Deterministic assessment computed from a completed session's answer log."""
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


class GeneratedQuestion(BaseModel):
    """A multiple-choice question produced by the LLM."""
    question: str
    options: List[str]
    correct_answer: int
    explanation: str = ""
    difficulty: str = "MEDIUM"


class InsightOutput(BaseModel):
    """Schema for LLM insight output."""
    summary: str
    recommendations: List[str] = Field(default_factory=list)
