"""
Question generator for adaptive tests.
Uses an LLM to write new multiple-choice questions for a subject/topic scope.
"""
import logging
import json
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from examprep.core.exceptions import QuestionGenerationError
from examprep.core.llm_config import LLMFactory
from examprep.core.agents.assessment.schemas import GeneratedQuestion
from examprep.core.agents.assessment.prompts import (
    QUESTION_GENERATION_SYSTEM_PROMPT,
    QUESTION_GENERATION_USER_PROMPT,
)
from examprep.models.question import Difficulty

logger = logging.getLogger(__name__)


class QuestionGenerator:
    """
    Generates exam-style MCQs with an LLM.
    """

    def __init__(self, llm: Optional[Any] = None):
        self.llm = llm or LLMFactory.create_llm(
            temperature=0.8,
            tracing_project="adaptive-question-generation",
        )

    def generate_questions(
        self,
        context: Dict[str, Optional[str]],
        count: int,
        difficulty: Difficulty = Difficulty.MEDIUM,
    ) -> List[GeneratedQuestion]:
        """
        Generate new questions for a scope.

        Args:
            context: Names of the subject/topic/subtopic to write about
            count: Number of questions wanted
            difficulty: Difficulty tier to target

        Returns:
            List of validated questions (may be fewer than ``count``)

        Raises:
            QuestionGenerationError: If the LLM call fails or nothing usable comes back
        """
        difficulty = Difficulty(difficulty)
        user_prompt = QUESTION_GENERATION_USER_PROMPT.format(
            count=count,
            context=self._format_context(context),
            difficulty=difficulty.value,
        )
        messages = [
            {"role": "system", "content": QUESTION_GENERATION_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

        logger.info(f"Generating {count} {difficulty.value} questions with LLM...")

        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            logger.error(f"LLM call failed while generating questions: {e}")
            raise QuestionGenerationError("Question generation service is unavailable") from e

        questions = self._parse_response(str(response.content), difficulty)
        if not questions:
            raise QuestionGenerationError("Question generation returned no usable questions")

        logger.info(f"Successfully generated {len(questions)} questions")
        return questions[:count]

    def _format_context(self, context: Dict[str, Optional[str]]) -> str:
        lines = []
        for label in ("subject", "topic", "subtopic"):
            if context.get(label):
                lines.append(f"{label.capitalize()}: {context[label]}")
        return "\n".join(lines)

    def _parse_response(self, response_text: str, difficulty: Difficulty) -> List[GeneratedQuestion]:
        """Extract and validate the JSON array from the LLM response."""
        if "```json" in response_text:
            start = response_text.find("```json") + 7
            end = response_text.find("```", start)
            response_text = response_text[start:end].strip()
        elif "```" in response_text:
            start = response_text.find("```") + 3
            end = response_text.find("```", start)
            response_text = response_text[start:end].strip()

        try:
            raw = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error(f"Parse error: {e}")
            raise QuestionGenerationError("Question generation returned malformed JSON") from e

        if not isinstance(raw, list):
            raise QuestionGenerationError("Question generation did not return a list")

        validated = []
        for item in raw:
            try:
                question = GeneratedQuestion(**item)
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid generated question: {e}")
                continue
            if self._is_valid(question):
                question.difficulty = self._normalize_difficulty(question.difficulty, difficulty)
                validated.append(question)
        return validated

    def _is_valid(self, question: GeneratedQuestion) -> bool:
        if not question.question.strip() or len(question.options) < 2:
            return False
        return 0 <= question.correct_answer < len(question.options)

    def _normalize_difficulty(self, value: str, default: Difficulty) -> str:
        try:
            return Difficulty(str(value).upper()).value
        except ValueError:
            return default.value
