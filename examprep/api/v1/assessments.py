"""
API endpoints for adaptive assessments - creating sessions, answering, pausing, results.
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from examprep.core.dependencies import (
    get_current_active_user,
    get_question_source,
    get_session_manager,
    require_llm_configured,
)
from examprep.db.base import get_db
from examprep.models.adaptive_session import AdaptiveTestSession, SessionStatus
from examprep.models.user import User
from examprep.schemas.assessment import (
    AdaptiveSessionResponse,
    AdaptiveTestConfig,
    AnswerSubmit,
    AssessmentResultResponse,
    GeneratedQuestionsResponse,
    GenerateQuestionsRequest,
    PerformanceHistoryResponse,
    QuestionView,
    SessionSummary,
    SubmitAnswerResponse,
)
from examprep.schemas.common import ErrorResponse
from examprep.services.adaptive_session import AdaptiveSessionManager
from examprep.services.performance_history import PerformanceHistory
from examprep.services.question_source import QuestionScope, QuestionSource

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)


# ============= Response Builders =============

def _question_view(question: Dict[str, Any], reveal: bool) -> QuestionView:
    return QuestionView(
        id=question["id"],
        question=question["question"],
        options=question["options"],
        difficulty=question["difficulty"],
        topic_id=question.get("topic_id"),
        topic_name=question.get("topic_name"),
        subtopic_id=question.get("subtopic_id"),
        estimated_time=question.get("estimated_time") or 0,
        is_ai_generated=question.get("is_ai_generated", False),
        correct_answer=question["correct_answer"] if reveal else None,
        explanation=question.get("explanation") if reveal else None,
    )


def _session_response(
    session: AdaptiveTestSession, manager: AdaptiveSessionManager
) -> AdaptiveSessionResponse:
    """
    Build the client view of a session.

    Only answered questions and the current one are listed while the session
    is open; upcoming slots may still be swapped by difficulty adaptation.
    Correct answers are revealed for answered questions only.
    """
    questions = list(session.questions or [])
    index = session.current_question_index
    completed = session.status == SessionStatus.COMPLETED

    if completed:
        visible = [_question_view(q, reveal=True) for q in questions]
        current = None
    else:
        visible = [_question_view(q, reveal=i < index) for i, q in enumerate(questions[:index + 1])]
        current = _question_view(questions[index], reveal=False) if index < len(questions) else None

    return AdaptiveSessionResponse(
        session_id=session.id,
        user_id=session.user_id,
        subject_id=session.subject_id,
        topic_id=session.topic_id,
        subtopic_id=session.subtopic_id,
        status=session.status,
        completion_reason=session.completion_reason,
        adaptive_mode=session.adaptive_mode,
        starting_difficulty=session.starting_difficulty,
        current_difficulty=session.current_difficulty,
        total_questions=len(questions),
        current_question_index=index,
        current_question=current,
        questions=visible,
        answers=session.answers or [],
        difficulty_progression=session.difficulty_progression or [],
        estimated_score=session.estimated_score,
        time_limit_seconds=session.time_limit_seconds,
        time_remaining=round(manager.time_remaining(session), 2),
        started_at=session.started_at,
        completed_at=session.completed_at,
    )


# ============= Session Endpoints =============

@router.post(
    "/create-adaptive-test",
    response_model=AdaptiveSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_adaptive_test(
    config: AdaptiveTestConfig,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """
    Start a new adaptive test session.

    Questions are drawn from the bank (topped up by AI generation when
    enabled) at the starting difficulty.
    """
    session = manager.create_session(current_user.id, config)
    return _session_response(session, manager)


@router.get("", response_model=List[SessionSummary])
def list_adaptive_tests(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """List the current user's sessions, newest first."""
    sessions = manager.list_sessions(current_user.id, limit=limit)
    return [
        SessionSummary(
            session_id=s.id,
            subject_id=s.subject_id,
            topic_id=s.topic_id,
            status=s.status,
            completion_reason=s.completion_reason,
            total_questions=len(s.questions or []),
            answered=len(s.answers or []),
            estimated_score=s.estimated_score,
            time_remaining=round(manager.time_remaining(s), 2),
            started_at=s.started_at,
            completed_at=s.completed_at,
        )
        for s in sessions
    ]


@router.get("/performance", response_model=PerformanceHistoryResponse)
def get_performance_history(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Performance over the user's most recent answers in completed sessions."""
    return PerformanceHistory(db).analyze(current_user.id)


@router.post(
    "/generate-questions",
    response_model=GeneratedQuestionsResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_llm_configured)],
)
def generate_questions(
    request: GenerateQuestionsRequest,
    current_user: User = Depends(get_current_active_user),
    question_source: QuestionSource = Depends(get_question_source),
):
    """
    Generate new questions with AI and add them to the bank.
    """
    scope = QuestionScope(
        subject_id=request.subject_id,
        topic_id=request.topic_id,
        subtopic_id=request.subtopic_id,
    )
    snapshots = question_source.generate_and_store(scope, request.difficulty, request.count)
    logger.info(f"User {current_user.id} generated {len(snapshots)} questions")
    return GeneratedQuestionsResponse(
        count=len(snapshots),
        questions=[_question_view(q, reveal=True) for q in snapshots],
    )


@router.get("/{session_id}", response_model=AdaptiveSessionResponse)
def get_adaptive_test(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """
    Get a session. Sessions whose time ran out are submitted automatically.
    """
    session = manager.get_session(session_id, current_user.id)
    return _session_response(session, manager)


@router.post("/{session_id}/submit-answer", response_model=SubmitAnswerResponse)
def submit_answer(
    session_id: int,
    answer: AnswerSubmit,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """
    Submit the answer to the current question.

    If the time limit has passed, the session is completed instead and
    ``answer_recorded`` is false.
    """
    session, feedback = manager.submit_answer(
        session_id,
        current_user.id,
        question_id=answer.question_id,
        selected_option_index=answer.selected_option_index,
        time_spent_seconds=answer.time_spent,
    )
    return SubmitAnswerResponse(
        answer_recorded=feedback is not None,
        feedback=feedback,
        session=_session_response(session, manager),
    )


@router.post("/{session_id}/pause", response_model=AdaptiveSessionResponse)
def pause_adaptive_test(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """Pause an active session; the countdown stops."""
    session = manager.pause_session(session_id, current_user.id)
    return _session_response(session, manager)


@router.post("/{session_id}/resume", response_model=AdaptiveSessionResponse)
def resume_adaptive_test(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """Resume a paused session."""
    session = manager.resume_session(session_id, current_user.id)
    return _session_response(session, manager)


@router.post("/{session_id}/complete", response_model=AssessmentResultResponse)
def complete_adaptive_test(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """
    Finish a session early. Unanswered questions count as incorrect.
    Completing an already completed session returns the same result.
    """
    result = manager.complete_session(session_id, current_user.id)
    return AssessmentResultResponse.model_validate(result)


@router.get("/{session_id}/result", response_model=AssessmentResultResponse)
def get_adaptive_test_result(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: AdaptiveSessionManager = Depends(get_session_manager),
):
    """Get the result of a completed session."""
    result = manager.get_result(session_id, current_user.id)
    return AssessmentResultResponse.model_validate(result)
