"""
Result aggregation for completed adaptive test sessions.
Replays the answer log and derives scores, breakdowns and guidance.
"""
import logging
import statistics
from typing import Any, Dict, List, Optional, Sequence

from examprep.core.config import settings
from examprep.core.agents.assessment.schemas import (
    AssessmentReport,
    DifficultyAnalysis,
    TierStats,
    TopicPerformance,
)
from examprep.models.adaptive_session import CompletionReason
from examprep.models.question import Difficulty

logger = logging.getLogger(__name__)


def percentage(correct: int, total: int) -> int:
    return round(100 * correct / total) if total else 0


class ResultAggregator:
    """
    Computes the read-only assessment for a completed session.

    The computation only depends on the question snapshots and the answer log,
    so replaying the same session always yields the same report.
    """

    def __init__(
        self,
        strength_threshold: Optional[float] = None,
        weakness_threshold: Optional[float] = None,
        full_sample_size: Optional[int] = None,
    ):
        self.strength_threshold = (
            settings.STRENGTH_THRESHOLD if strength_threshold is None else strength_threshold
        )
        self.weakness_threshold = (
            settings.WEAKNESS_THRESHOLD if weakness_threshold is None else weakness_threshold
        )
        self.full_sample_size = full_sample_size or settings.CONFIDENCE_FULL_SAMPLE

    def aggregate(
        self,
        questions: Sequence[Dict[str, Any]],
        answers: Sequence[Dict[str, Any]],
        completion_reason: Optional[str] = None,
    ) -> AssessmentReport:
        """
        Build the assessment report.

        Args:
            questions: Ordered question snapshots attached to the session
            answers: Answer log entries (question_id, is_correct, time_spent, difficulty)
            completion_reason: How the session ended

        Returns:
            AssessmentReport
        """
        total_questions = len(questions)
        correct_answers = sum(1 for a in answers if a.get("is_correct"))
        unanswered = max(total_questions - len(answers), 0)
        score = percentage(correct_answers, total_questions)

        time_spent = float(sum(a.get("time_spent") or 0 for a in answers))
        average_time = round(time_spent / total_questions, 2) if total_questions else 0.0

        difficulty_analysis = self._analyze_by_difficulty(answers)
        topic_performance = self._analyze_by_topic(questions, answers)

        strengths, weaknesses = self._classify(
            difficulty_analysis, topic_performance, unanswered, completion_reason
        )
        weak_topics = [
            t.topic_name for t in topic_performance if t.score < self.weakness_threshold
        ]
        weak_tiers = [
            tier for tier, stats in self._tiers(difficulty_analysis)
            if stats.total and percentage(stats.correct, stats.total) < self.weakness_threshold
        ]
        recommendations = self._recommendations(weak_topics, weak_tiers, unanswered, score)
        next_steps = self._next_steps(weak_topics, score)
        confidence = self._confidence(difficulty_analysis, len(answers))

        logger.info(
            f"Aggregated result: {correct_answers}/{total_questions} correct, "
            f"score {score}%, confidence {confidence}"
        )

        return AssessmentReport(
            total_questions=total_questions,
            correct_answers=correct_answers,
            incorrect_answers=total_questions - correct_answers,
            unanswered=unanswered,
            score=score,
            time_spent=time_spent,
            average_time_per_question=average_time,
            difficulty_analysis=difficulty_analysis,
            topic_performance=topic_performance,
            strengths=strengths,
            weaknesses=weaknesses,
            recommendations=recommendations,
            next_steps=next_steps,
            confidence_level=confidence,
        )

    @staticmethod
    def _tiers(analysis: DifficultyAnalysis):
        return [
            (Difficulty.EASY, analysis.easy),
            (Difficulty.MEDIUM, analysis.medium),
            (Difficulty.HARD, analysis.hard),
        ]

    def _analyze_by_difficulty(self, answers: Sequence[Dict[str, Any]]) -> DifficultyAnalysis:
        """Group answers by the tier that was active when each was given."""
        analysis = DifficultyAnalysis()
        for answer in answers:
            tier = str(answer.get("difficulty") or Difficulty.MEDIUM.value).lower()
            stats: TierStats = getattr(analysis, tier)
            stats.total += 1
            if answer.get("is_correct"):
                stats.correct += 1
        return analysis

    def _analyze_by_topic(
        self,
        questions: Sequence[Dict[str, Any]],
        answers: Sequence[Dict[str, Any]],
    ) -> List[TopicPerformance]:
        """
        Score answered questions per topic, in order of first appearance.
        """
        qmap = {q["id"]: q for q in questions}
        topic_data: Dict[Any, Dict[str, Any]] = {}

        for answer in answers:
            question = qmap.get(answer.get("question_id"))
            if question is None:
                continue
            topic_id = question.get("topic_id")
            if topic_id not in topic_data:
                topic_data[topic_id] = {
                    "name": question.get("topic_name") or "General",
                    "correct": 0,
                    "total": 0,
                }
            topic_data[topic_id]["total"] += 1
            if answer.get("is_correct"):
                topic_data[topic_id]["correct"] += 1

        return [
            TopicPerformance(
                topic_id=topic_id,
                topic_name=data["name"],
                score=percentage(data["correct"], data["total"]),
                questions=data["total"],
            )
            for topic_id, data in topic_data.items()
        ]

    def _classify(
        self,
        analysis: DifficultyAnalysis,
        topics: List[TopicPerformance],
        unanswered: int,
        completion_reason: Optional[str],
    ):
        strengths: List[str] = []
        weaknesses: List[str] = []

        for topic in topics:
            if topic.score >= self.strength_threshold:
                strengths.append(f"Strong performance in {topic.topic_name} ({topic.score}%)")
            elif topic.score < self.weakness_threshold:
                weaknesses.append(f"Needs improvement in {topic.topic_name} ({topic.score}%)")

        for tier, stats in self._tiers(analysis):
            if not stats.total:
                continue
            accuracy = percentage(stats.correct, stats.total)
            if accuracy >= self.strength_threshold:
                strengths.append(
                    f"Handles {tier.value} questions well ({stats.correct}/{stats.total} correct)"
                )
            elif accuracy < self.weakness_threshold:
                weaknesses.append(
                    f"Struggles with {tier.value} questions ({stats.correct}/{stats.total} correct)"
                )

        if completion_reason == CompletionReason.TIME_EXPIRED.value:
            weaknesses.append("Ran out of time before finishing the test")
        if unanswered:
            weaknesses.append(f"{unanswered} question(s) left unanswered")

        return strengths, weaknesses

    def _recommendations(
        self,
        weak_topics: List[str],
        weak_tiers: List[Difficulty],
        unanswered: int,
        score: int,
    ) -> List[str]:
        recommendations = [
            f"Revise the fundamentals of {topic} and practise 10-15 more questions on it"
            for topic in weak_topics
        ]

        tier_advice = {
            Difficulty.EASY: "Revisit core concepts and formulas: EASY questions are being missed",
            Difficulty.MEDIUM: "Practise standard MEDIUM-level problems to consolidate problem-solving steps",
            Difficulty.HARD: "Work through solved HARD-level problems before attempting them under time pressure",
        }
        recommendations.extend(tier_advice[tier] for tier in weak_tiers)

        if unanswered:
            recommendations.append("Take timed practice tests to improve pacing")

        if not recommendations:
            if score >= self.strength_threshold:
                recommendations.append("Challenge yourself with sessions starting at HARD difficulty")
            recommendations.append("Keep up mixed-difficulty practice to maintain your performance")

        return recommendations

    def _next_steps(self, weak_topics: List[str], score: int) -> List[str]:
        steps = []
        if weak_topics:
            steps.append(f"Focus your next session on {', '.join(weak_topics)}")

        if score < self.weakness_threshold:
            start = Difficulty.EASY
        elif score >= self.strength_threshold:
            start = Difficulty.HARD
        else:
            start = Difficulty.MEDIUM
        steps.append(f"Start the next adaptive test at {start.value} difficulty")
        steps.append("Review the explanations of every incorrect answer")
        return steps

    def _confidence(self, analysis: DifficultyAnalysis, answered: int) -> int:
        """
        Combine sample size and cross-tier consistency into a 0-100 score.
        """
        if answered == 0:
            return 0

        sample = min(1.0, answered / self.full_sample_size)

        accuracies = [
            stats.correct / stats.total for _, stats in self._tiers(analysis) if stats.total
        ]
        spread = statistics.pstdev(accuracies) if len(accuracies) > 1 else 0.0
        # Population std-dev of values in [0, 1] never exceeds 0.5
        consistency = max(0.0, 1.0 - 2 * spread)

        return round(100 * (0.5 * sample + 0.5 * consistency))
