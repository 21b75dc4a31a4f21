"""Schemas module - Import all schemas."""
from examprep.schemas.user import User, UserCreate, Token
from examprep.schemas.assessment import (
    AdaptiveTestConfig,
    AnswerSubmit,
    AdaptiveSessionResponse,
    SessionSummary,
    SubmitAnswerResponse,
    AssessmentResultResponse,
    GenerateQuestionsRequest,
    GeneratedQuestionsResponse,
    PerformanceHistoryResponse,
)
from examprep.schemas.common import ErrorResponse

__all__ = [
    "User",
    "UserCreate",
    "Token",
    "AdaptiveTestConfig",
    "AnswerSubmit",
    "AdaptiveSessionResponse",
    "SessionSummary",
    "SubmitAnswerResponse",
    "AssessmentResultResponse",
    "GenerateQuestionsRequest",
    "GeneratedQuestionsResponse",
    "PerformanceHistoryResponse",
    "ErrorResponse",
]
