"""
Performance history across a user's completed adaptive sessions.
"""
import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from examprep.core.agents.assessment.result_aggregator import percentage
from examprep.core.agents.assessment.schemas import DifficultyAnalysis, TopicPerformance
from examprep.models.adaptive_session import AdaptiveTestSession, SessionStatus
from examprep.schemas.assessment import PerformanceHistoryResponse

logger = logging.getLogger(__name__)

HISTORY_SIZE = 50
TREND_WINDOW = 10
TREND_MARGIN = 10

IMPROVING = "IMPROVING"
DECLINING = "DECLINING"
STABLE = "STABLE"


class PerformanceHistory:
    """
    Summarizes the most recent answers a user gave in completed sessions.
    """

    def __init__(self, db: Session):
        self.db = db

    def analyze(self, user_id: int) -> PerformanceHistoryResponse:
        """
        Analyze the user's last answered questions.

        Args:
            user_id: User ID

        Returns:
            PerformanceHistoryResponse with averages, breakdowns and trend
        """
        answers, sessions_used = self._recent_answers(user_id)

        correct = sum(1 for a, _ in answers if a.get("is_correct"))

        analysis = DifficultyAnalysis()
        topics: Dict[Any, Dict[str, Any]] = {}
        for answer, question in answers:
            tier = getattr(analysis, str(answer.get("difficulty") or "MEDIUM").lower(), None)
            if tier is not None:
                tier.total += 1
                if answer.get("is_correct"):
                    tier.correct += 1

            topic_name = (question or {}).get("topic_name") or "General"
            key = (question or {}).get("topic_id") or topic_name
            bucket = topics.setdefault(
                key,
                {"topic_id": (question or {}).get("topic_id"), "name": topic_name, "correct": 0, "total": 0},
            )
            bucket["total"] += 1
            if answer.get("is_correct"):
                bucket["correct"] += 1

        topic_performance = sorted(
            (
                TopicPerformance(
                    topic_id=b["topic_id"],
                    topic_name=b["name"],
                    score=percentage(b["correct"], b["total"]),
                    questions=b["total"],
                )
                for b in topics.values()
            ),
            key=lambda t: (-t.questions, t.topic_name),
        )

        logger.info(f"Analyzed {len(answers)} recent answers for user {user_id}")

        return PerformanceHistoryResponse(
            questions_analyzed=len(answers),
            sessions_analyzed=sessions_used,
            average_score=percentage(correct, len(answers)),
            difficulty_performance=analysis,
            topic_performance=topic_performance,
            recent_trend=recent_trend([bool(a.get("is_correct")) for a, _ in answers]),
        )

    def _recent_answers(self, user_id: int) -> Tuple[List[Tuple[Dict[str, Any], Dict[str, Any]]], int]:
        """Newest-first (answer, question) pairs, capped at HISTORY_SIZE."""
        sessions = (
            self.db.query(AdaptiveTestSession)
            .filter(
                AdaptiveTestSession.user_id == user_id,
                AdaptiveTestSession.status == SessionStatus.COMPLETED,
            )
            .order_by(AdaptiveTestSession.completed_at.desc(), AdaptiveTestSession.id.desc())
            .all()
        )

        pairs: List[Tuple[Dict[str, Any], Dict[str, Any]]] = []
        sessions_used = 0
        for session in sessions:
            if len(pairs) >= HISTORY_SIZE:
                break
            by_id = {q["id"]: q for q in session.questions or []}
            session_answers = list(session.answers or [])
            if session_answers:
                sessions_used += 1
            for answer in reversed(session_answers):
                pairs.append((answer, by_id.get(answer.get("question_id"))))
                if len(pairs) >= HISTORY_SIZE:
                    break
        return pairs, sessions_used


def recent_trend(outcomes_newest_first: List[bool]) -> str:
    """
    Compare accuracy of the latest answers with the ones before them.
    Needs a full window on both sides, otherwise STABLE.
    """
    if len(outcomes_newest_first) < 2 * TREND_WINDOW:
        return STABLE

    latest = outcomes_newest_first[:TREND_WINDOW]
    previous = outcomes_newest_first[TREND_WINDOW:2 * TREND_WINDOW]
    delta = 100 * (sum(latest) - sum(previous)) / TREND_WINDOW

    if delta > TREND_MARGIN:
        return IMPROVING
    if delta < -TREND_MARGIN:
        return DECLINING
    return STABLE
