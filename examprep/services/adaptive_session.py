"""
Adaptive test session lifecycle: create, answer, adapt, pause/resume, complete.

Every operation loads the session row under a row lock, mutates it and commits
before returning. A ``version`` column catches writers that raced past the
lock (e.g. on databases without SELECT ... FOR UPDATE).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from examprep.core.config import settings
from examprep.core.exceptions import (
    ConcurrentUpdateError,
    InvalidAnswerError,
    InvalidConfigError,
    InvalidStateError,
    NotOwnerError,
    SessionNotFoundError,
    StaleQuestionError,
)
from examprep.core.llm_config import LLMFactory
from examprep.core.agents.assessment import DifficultyPolicy, InsightGenerator, ResultAggregator
from examprep.models.adaptive_session import (
    AdaptiveTestSession,
    AssessmentResult,
    CompletionReason,
    SessionStatus,
)
from examprep.models.question import Difficulty
from examprep.schemas.assessment import AdaptiveTestConfig
from examprep.services.question_source import QuestionScope, QuestionSource

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Allowed status transitions; COMPLETED is terminal
TRANSITIONS = {
    SessionStatus.ACTIVE: {SessionStatus.PAUSED, SessionStatus.COMPLETED},
    SessionStatus.PAUSED: {SessionStatus.ACTIVE, SessionStatus.COMPLETED},
    SessionStatus.COMPLETED: set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the database."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class AdaptiveSessionManager:
    """
    Owns the adaptive test state machine.

    Args:
        db: Database session
        question_source: Supplies questions for new sessions
        aggregator: Computes results on completion
        insight_generator_factory: Builds the optional LLM enrichment step
        insights_enabled: Override for settings.AI_INSIGHTS_ENABLED
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        db: Session,
        question_source: Optional[QuestionSource] = None,
        aggregator: Optional[ResultAggregator] = None,
        insight_generator_factory: Optional[Callable[[], InsightGenerator]] = None,
        insights_enabled: Optional[bool] = None,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.question_source = question_source or QuestionSource(db)
        self.aggregator = aggregator or ResultAggregator()
        self.insight_generator_factory = insight_generator_factory or InsightGenerator
        if insights_enabled is None:
            insights_enabled = settings.AI_INSIGHTS_ENABLED and LLMFactory.is_configured()
        self.insights_enabled = insights_enabled
        self.clock = clock or utcnow

    # ============= Lifecycle =============

    def create_session(self, user_id: int, config: AdaptiveTestConfig) -> AdaptiveTestSession:
        """
        Start a new adaptive test for ``user_id``.

        Raises:
            InvalidConfigError: Bad parameters or unknown scope
            NoQuestionsAvailableError: The scope cannot supply enough questions
        """
        if config.question_count <= 0:
            raise InvalidConfigError("question_count must be greater than 0")
        if config.question_count > settings.MAX_QUESTION_COUNT:
            raise InvalidConfigError(
                f"question_count must not exceed {settings.MAX_QUESTION_COUNT}"
            )
        if config.time_limit_minutes <= 0:
            raise InvalidConfigError("time_limit_minutes must be greater than 0")

        scope = QuestionScope(
            subject_id=config.subject_id,
            topic_id=config.topic_id,
            subtopic_id=config.subtopic_id,
        )
        self.question_source.resolve_scope(scope)

        starting = Difficulty(config.starting_difficulty)
        questions, reserve = self.question_source.select_for_session(
            scope, starting, config.question_count, config.adaptive_mode
        )

        policy = DifficultyPolicy(starting, config.adaptive_mode)
        first = policy.initial()

        now = self.clock()
        time_limit = config.time_limit_minutes * 60
        session = AdaptiveTestSession(
            user_id=user_id,
            subject_id=config.subject_id,
            topic_id=config.topic_id,
            subtopic_id=config.subtopic_id,
            question_count=len(questions),
            questions=questions,
            reserve_questions=reserve,
            current_question_index=0,
            answers=[],
            difficulty_progression=[
                {"question_index": 0, "difficulty": first.difficulty.value, "reason": first.reason}
            ],
            estimated_score=0,
            adaptive_mode=config.adaptive_mode,
            starting_difficulty=starting,
            current_difficulty=starting,
            time_limit_seconds=time_limit,
            time_remaining_seconds=float(time_limit),
            active_since=now,
            status=SessionStatus.ACTIVE,
            started_at=now,
        )
        self.db.add(session)
        self._commit()
        self.db.refresh(session)

        logger.info(
            f"Created adaptive session {session.id} for user {user_id}: "
            f"{len(questions)} questions starting at {starting.value}"
        )
        return session

    def get_session(self, session_id: int, user_id: int) -> AdaptiveTestSession:
        """
        Poll a session. Applies lazy expiry before returning it.
        """
        session = self._load(session_id, user_id)
        if self._expire_if_due(session):
            self._commit()
        return session

    def list_sessions(self, user_id: int, limit: int = 20) -> List[AdaptiveTestSession]:
        """The user's sessions, newest first."""
        sessions = (
            self.db.query(AdaptiveTestSession)
            .filter(AdaptiveTestSession.user_id == user_id)
            .order_by(AdaptiveTestSession.started_at.desc(), AdaptiveTestSession.id.desc())
            .limit(limit)
            .all()
        )
        expired = [s for s in sessions if self._expire_if_due(s)]
        if expired:
            self._commit()
        return sessions

    def pause_session(self, session_id: int, user_id: int) -> AdaptiveTestSession:
        """
        Pause an active session and freeze its remaining time.

        Raises:
            NotOwnerError: Caller does not own the session
            InvalidStateError: Session is not ACTIVE
        """
        session = self._load(session_id, user_id)
        if self._expire_if_due(session):
            self._commit()
            raise InvalidStateError("Session time has expired and it was submitted automatically")

        self._transition(session, SessionStatus.PAUSED)
        session.time_remaining_seconds = self.time_remaining(session)
        session.active_since = None
        session.status = SessionStatus.PAUSED
        self._commit()

        logger.info(
            f"Paused session {session.id} with {session.time_remaining_seconds:.0f}s remaining"
        )
        return session

    def resume_session(self, session_id: int, user_id: int) -> AdaptiveTestSession:
        """
        Resume a paused session; the countdown continues from the frozen value.

        Raises:
            NotOwnerError: Caller does not own the session
            InvalidStateError: Session is not PAUSED
        """
        session = self._load(session_id, user_id)
        self._transition(session, SessionStatus.ACTIVE)
        session.active_since = self.clock()
        session.status = SessionStatus.ACTIVE
        self._commit()

        logger.info(f"Resumed session {session.id}")
        return session

    def complete_session(
        self,
        session_id: int,
        user_id: Optional[int] = None,
        reason: CompletionReason = CompletionReason.USER_COMPLETED,
    ) -> AssessmentResult:
        """
        Complete a session and return its result.

        Calling this on an already completed session returns the stored result
        unchanged. An active session whose time ran out is completed as
        TIME_EXPIRED regardless of ``reason``.
        """
        session = self._load(session_id, user_id)

        if session.status == SessionStatus.COMPLETED:
            return self._stored_result(session)

        if not self._expire_if_due(session):
            self._finalize(session, reason)
        self._commit()
        return session.result

    def get_result(self, session_id: int, user_id: int) -> AssessmentResult:
        """
        Raises:
            InvalidStateError: Session has not completed yet
        """
        session = self._load(session_id, user_id)
        if self._expire_if_due(session):
            self._commit()

        if session.status != SessionStatus.COMPLETED:
            raise InvalidStateError("Test session not completed")
        return self._stored_result(session)

    # ============= Answers =============

    def submit_answer(
        self,
        session_id: int,
        user_id: int,
        question_id: int,
        selected_option_index: int,
        time_spent_seconds: float,
    ) -> Tuple[AdaptiveTestSession, Optional[Dict[str, Any]]]:
        """
        Record the answer to the current question.

        Returns:
            Tuple of (session, feedback). Feedback is None when the session had
            already run out of time: it is then completed instead and the
            answer is not recorded.

        Raises:
            NotOwnerError: Caller does not own the session
            InvalidStateError: Session is not ACTIVE
            StaleQuestionError: ``question_id`` is not the current question
            InvalidAnswerError: Option index out of range
        """
        session = self._load(session_id, user_id)

        if self._expire_if_due(session):
            self._commit()
            return session, None

        if session.status != SessionStatus.ACTIVE:
            raise InvalidStateError(
                f"Cannot submit an answer while the session is {session.status.value}"
            )

        index = session.current_question_index
        questions = list(session.questions)
        if index >= len(questions):
            raise InvalidStateError("All questions have already been answered")

        question = questions[index]
        if question["id"] != question_id:
            raise StaleQuestionError(
                f"Question {question_id} is not the current question (expected {question['id']})"
            )

        if not 0 <= selected_option_index < len(question["options"]):
            raise InvalidAnswerError(
                f"Option index {selected_option_index} is out of range for question {question_id}"
            )

        remaining = self.time_remaining(session)
        time_spent = min(max(float(time_spent_seconds), 0.0), remaining)
        is_correct = selected_option_index == question["correct_answer"]

        answers = list(session.answers)
        answers.append({
            "question_id": question_id,
            "answer": selected_option_index,
            "time_spent": time_spent,
            "is_correct": is_correct,
            "difficulty": self._active_difficulty(session, index),
            "estimated_time": question.get("estimated_time"),
            "timestamp": self.clock().isoformat(),
        })
        session.answers = answers
        session.current_question_index = index + 1

        correct = sum(1 for a in answers if a["is_correct"])
        session.estimated_score = round(100 * correct / len(answers))

        if session.current_question_index >= len(questions):
            self._finalize(session, CompletionReason.ALL_ANSWERED)
        else:
            self._adapt_next(session)

        self._commit()

        feedback = {
            "question_id": question_id,
            "selected_option_index": selected_option_index,
            "is_correct": is_correct,
            "correct_answer": question["correct_answer"],
            "explanation": question.get("explanation"),
            "time_spent": time_spent,
        }
        return session, feedback

    # ============= Timing =============

    def time_remaining(self, session: AdaptiveTestSession) -> float:
        """Seconds left in the budget; frozen unless the session is ACTIVE."""
        remaining = float(session.time_remaining_seconds or 0)
        if session.status == SessionStatus.ACTIVE and session.active_since is not None:
            elapsed = (self.clock() - as_utc(session.active_since)).total_seconds()
            remaining -= max(elapsed, 0.0)
        return max(remaining, 0.0)

    def _expire_if_due(self, session: AdaptiveTestSession) -> bool:
        """Auto-submit an ACTIVE session whose time budget is used up."""
        if session.status != SessionStatus.ACTIVE or self.time_remaining(session) > 0:
            return False
        logger.info(f"Session {session.id} ran out of time, submitting automatically")
        self._finalize(session, CompletionReason.TIME_EXPIRED)
        return True

    # ============= Internals =============

    def _load(self, session_id: int, user_id: Optional[int]) -> AdaptiveTestSession:
        session = (
            self.db.query(AdaptiveTestSession)
            .filter(AdaptiveTestSession.id == session_id)
            .with_for_update()
            .first()
        )
        if not session:
            raise SessionNotFoundError(f"Test session {session_id} not found")
        if user_id is not None and session.user_id != user_id:
            logger.warning(f"User {user_id} tried to access session {session_id} of another user")
            raise NotOwnerError("You do not own this test session")
        return session

    def _transition(self, session: AdaptiveTestSession, target: SessionStatus) -> None:
        current = SessionStatus(session.status)
        if target not in TRANSITIONS[current]:
            raise InvalidStateError(
                f"Cannot move session from {current.value} to {target.value}"
            )

    def _active_difficulty(self, session: AdaptiveTestSession, index: int) -> str:
        for step in reversed(session.difficulty_progression or []):
            if step["question_index"] <= index:
                return step["difficulty"]
        return Difficulty(session.starting_difficulty).value

    def _adapt_next(self, session: AdaptiveTestSession) -> None:
        """Choose the next question's difficulty and swap in a matching question."""
        policy = DifficultyPolicy(session.starting_difficulty, session.adaptive_mode)
        decision = policy.decide(session.current_difficulty, session.answers)

        next_index = session.current_question_index
        questions = list(session.questions)
        reason = decision.reason
        target = decision.difficulty.value

        if session.adaptive_mode and questions[next_index]["difficulty"] != target:
            reserve = list(session.reserve_questions or [])
            match = next((q for q in reserve if q["difficulty"] == target), None)
            if match is not None:
                reserve.remove(match)
                reserve.append(questions[next_index])
                questions[next_index] = match
                session.questions = questions
                session.reserve_questions = reserve
            else:
                reason = (
                    f"{reason}; no {target} question left, "
                    f"keeping a {questions[next_index]['difficulty']} question"
                )

        session.current_difficulty = decision.difficulty
        session.difficulty_progression = list(session.difficulty_progression or []) + [
            {"question_index": next_index, "difficulty": target, "reason": reason}
        ]

    def _finalize(self, session: AdaptiveTestSession, reason: CompletionReason) -> AssessmentResult:
        """Mark the session COMPLETED and attach its computed result."""
        self._transition(session, SessionStatus.COMPLETED)
        now = self.clock()

        session.time_remaining_seconds = self.time_remaining(session)
        session.active_since = None
        session.status = SessionStatus.COMPLETED
        session.completion_reason = reason
        session.completed_at = now

        result = self._build_result(session)
        session.result = result

        logger.info(
            f"Completed session {session.id} ({reason.value}): "
            f"{result.correct_answers}/{result.total_questions} correct"
        )
        return result

    def _stored_result(self, session: AdaptiveTestSession) -> AssessmentResult:
        if session.result is None:
            # Completed before results were persisted; replay the answer log
            session.result = self._build_result(session)
            self._commit()
        return session.result

    def _build_result(self, session: AdaptiveTestSession) -> AssessmentResult:
        reason = session.completion_reason.value if session.completion_reason else None
        report = self.aggregator.aggregate(session.questions, session.answers, reason)

        ai_insights = None
        if self.insights_enabled:
            try:
                ai_insights = self.insight_generator_factory().generate_insights(report, reason)
            except Exception as e:
                logger.warning(f"Skipping AI insights for session {session.id}: {e}")

        return AssessmentResult(
            user_id=session.user_id,
            total_questions=report.total_questions,
            correct_answers=report.correct_answers,
            incorrect_answers=report.incorrect_answers,
            unanswered=report.unanswered,
            score=report.score,
            time_spent=report.time_spent,
            average_time_per_question=report.average_time_per_question,
            difficulty_analysis=report.difficulty_analysis.model_dump(),
            topic_performance=[t.model_dump() for t in report.topic_performance],
            strengths=report.strengths,
            weaknesses=report.weaknesses,
            recommendations=report.recommendations,
            next_steps=report.next_steps,
            confidence_level=report.confidence_level,
            completion_reason=reason,
            ai_insights=ai_insights,
        )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Concurrent update detected: {e}")
            raise ConcurrentUpdateError(
                "The test session was modified by another request, please retry"
            ) from e
