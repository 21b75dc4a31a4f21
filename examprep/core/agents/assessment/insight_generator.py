"""
Optional LLM enrichment of assessment results.
"""
import logging
from typing import Any, List, Optional

from langchain_core.messages import SystemMessage, HumanMessage

from examprep.core.llm_config import LLMFactory
from examprep.core.agents.assessment.schemas import AssessmentReport, InsightOutput, TopicPerformance
from examprep.core.agents.assessment.prompts import (
    INSIGHT_SYSTEM_PROMPT,
    INSIGHT_USER_PROMPT_TEMPLATE,
)

logger = logging.getLogger(__name__)


class InsightGenerator:
    """
    Adds free-text study advice on top of the deterministic report.
    Never raises: the report stands on its own when the LLM is unavailable.
    """

    def __init__(self, llm: Optional[Any] = None):
        self.llm = llm or LLMFactory.create_llm(temperature=0.7, tracing_project="adaptive-insights")
        self.structured_llm = self.llm.with_structured_output(InsightOutput)

    def generate_insights(self, report: AssessmentReport, completion_reason: Optional[str] = None) -> Optional[str]:
        """
        Generate a short narrative with recommendations.

        Args:
            report: Deterministic assessment report
            completion_reason: How the session ended

        Returns:
            Insight text, or None if the LLM call failed
        """
        try:
            analysis = report.difficulty_analysis
            user_prompt = INSIGHT_USER_PROMPT_TEMPLATE.format(
                score=report.score,
                correct=report.correct_answers,
                total=report.total_questions,
                average_time=report.average_time_per_question,
                completion_reason=completion_reason or "unknown",
                easy_correct=analysis.easy.correct,
                easy_total=analysis.easy.total,
                medium_correct=analysis.medium.correct,
                medium_total=analysis.medium.total,
                hard_correct=analysis.hard.correct,
                hard_total=analysis.hard.total,
                topic_breakdown=self._format_topic_breakdown(report.topic_performance),
                weaknesses=self._format_list(report.weaknesses),
            )
            messages = [
                SystemMessage(content=INSIGHT_SYSTEM_PROMPT),
                HumanMessage(content=user_prompt),
            ]
            result = self.structured_llm.invoke(messages)
        except Exception as e:
            logger.warning(f"AI insight generation unavailable: {e}")
            return None

        lines = [result.summary.strip()]
        lines.extend(f"- {rec.strip()}" for rec in result.recommendations if rec.strip())
        return "\n".join(lines)

    def _format_topic_breakdown(self, topics: List[TopicPerformance]) -> str:
        if not topics:
            return "No topic-specific data available."
        return "\n".join(
            f"- {t.topic_name}: {t.score}% over {t.questions} question(s)" for t in topics
        )

    def _format_list(self, items: List[str]) -> str:
        if not items:
            return "None identified."
        return "\n".join(f"- {item}" for item in items)
