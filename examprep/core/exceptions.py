"""
Domain errors raised by the adaptive assessment services.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API layer answers with. Services raise these; ``examprep.main`` renders them.
"""
from fastapi import status


class AssessmentError(Exception):
    """Base class for all adaptive assessment errors."""

    code = "assessment_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidConfigError(AssessmentError):
    """Session parameters are not acceptable."""

    code = "invalid_config"
    status_code = status.HTTP_400_BAD_REQUEST


class NoQuestionsAvailableError(InvalidConfigError):
    """The question source cannot satisfy the requested scope/count."""

    code = "no_questions_available"
    status_code = status.HTTP_404_NOT_FOUND


class SessionNotFoundError(AssessmentError):
    code = "session_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class NotOwnerError(AssessmentError):
    """Caller tried to act on another user's session."""

    code = "not_owner"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(AssessmentError):
    """Operation is not allowed for the session's current status."""

    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class StaleQuestionError(AssessmentError):
    """Answer was submitted for a question that is no longer current."""

    code = "stale_question"
    status_code = status.HTTP_409_CONFLICT


class InvalidAnswerError(AssessmentError):
    """Selected option index is out of range."""

    code = "invalid_answer"
    status_code = status.HTTP_400_BAD_REQUEST


class QuestionGenerationError(AssessmentError):
    """The LLM could not produce usable questions."""

    code = "question_generation_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class ConcurrentUpdateError(AssessmentError):
    """Another request changed the session while this one was in flight."""

    code = "concurrent_update"
    status_code = status.HTTP_409_CONFLICT
