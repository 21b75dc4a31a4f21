"""
Question source for adaptive tests: the question bank, topped up by the LLM.
"""
import logging
import random
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.orm import Session, selectinload

from examprep.core.config import settings
from examprep.core.exceptions import (
    InvalidConfigError,
    NoQuestionsAvailableError,
    QuestionGenerationError,
)
from examprep.core.llm_config import LLMFactory
from examprep.core.agents.assessment.difficulty_policy import TIER_ORDER
from examprep.core.agents.assessment.question_generator import QuestionGenerator
from examprep.models.question import Difficulty, Question, QuestionOption, Subject, Subtopic, Topic

logger = logging.getLogger(__name__)


class QuestionScope(BaseModel):
    """Subject/topic/subtopic filter for question selection."""
    subject_id: int
    topic_id: Optional[int] = None
    subtopic_id: Optional[int] = None


def question_snapshot(question: Question) -> Optional[Dict[str, Any]]:
    """
    Freeze a bank question into the dict attached to a session.
    Returns None for questions without exactly one correct option.
    """
    options = list(question.options)
    correct = [i for i, opt in enumerate(options) if opt.is_correct]
    if len(options) < 2 or len(correct) != 1:
        return None

    return {
        "id": question.id,
        "question": question.stem,
        "options": [opt.text for opt in options],
        "correct_answer": correct[0],
        "explanation": question.explanation or "Explanation not available",
        "difficulty": Difficulty(question.difficulty).value,
        "topic_id": question.topic_id,
        "topic_name": question.topic.name if question.topic else None,
        "subtopic_id": question.subtopic_id,
        "estimated_time": question.estimated_time or settings.DEFAULT_ESTIMATED_TIME,
        "is_ai_generated": bool(question.is_ai_generated),
    }


def tiers_by_distance(difficulty: Difficulty) -> List[Difficulty]:
    """All tiers ordered by distance from ``difficulty`` (itself first, easier first on ties)."""
    idx = TIER_ORDER.index(Difficulty(difficulty))
    return sorted(TIER_ORDER, key=lambda t: (abs(TIER_ORDER.index(t) - idx), TIER_ORDER.index(t)))


class QuestionSource:
    """
    Supplies question snapshots for a scope and difficulty.

    Questions come from the bank in random order. When the bank cannot cover
    the requested count and AI generation is enabled, the shortfall is
    generated, stored in the bank and returned with the rest.
    """

    def __init__(
        self,
        db: Session,
        generator_factory: Optional[Callable[[], QuestionGenerator]] = None,
        ai_enabled: Optional[bool] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.generator_factory = generator_factory or QuestionGenerator
        if ai_enabled is None:
            ai_enabled = settings.AI_QUESTION_GENERATION_ENABLED and LLMFactory.is_configured()
        self.ai_enabled = ai_enabled
        self.rng = rng or random.Random()

    # ============= Scope =============

    def resolve_scope(self, scope: QuestionScope) -> Dict[str, Optional[str]]:
        """
        Check that the scope exists and is consistent; return its names.

        Raises:
            InvalidConfigError: Unknown subject/topic/subtopic or mismatched hierarchy
        """
        subject = self.db.query(Subject).filter(Subject.id == scope.subject_id).first()
        if not subject:
            raise InvalidConfigError(f"Subject {scope.subject_id} not found")

        context: Dict[str, Optional[str]] = {"subject": subject.name, "topic": None, "subtopic": None}

        if scope.topic_id is not None:
            topic = self.db.query(Topic).filter(Topic.id == scope.topic_id).first()
            if not topic or topic.subject_id != subject.id:
                raise InvalidConfigError(f"Topic {scope.topic_id} not found in subject {subject.id}")
            context["topic"] = topic.name

        if scope.subtopic_id is not None:
            subtopic = self.db.query(Subtopic).filter(Subtopic.id == scope.subtopic_id).first()
            if not subtopic:
                raise InvalidConfigError(f"Subtopic {scope.subtopic_id} not found")
            if scope.topic_id is not None and subtopic.topic_id != scope.topic_id:
                raise InvalidConfigError(
                    f"Subtopic {scope.subtopic_id} does not belong to topic {scope.topic_id}"
                )
            if subtopic.topic.subject_id != subject.id:
                raise InvalidConfigError(
                    f"Subtopic {scope.subtopic_id} not found in subject {subject.id}"
                )
            context["subtopic"] = subtopic.name

        return context

    # ============= Fetching =============

    def fetch_questions(
        self,
        scope: QuestionScope,
        difficulty: Difficulty,
        count: int,
        exclude_ids: Iterable[int] = (),
        allow_generation: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Fetch up to ``count`` question snapshots of one difficulty.
        """
        if count <= 0:
            return []

        snapshots = self._from_bank(scope, difficulty, count, exclude_ids)

        if len(snapshots) < count and allow_generation and self.ai_enabled:
            missing = count - len(snapshots)
            try:
                snapshots.extend(self.generate_and_store(scope, difficulty, missing))
            except QuestionGenerationError as e:
                logger.warning(f"Failed to generate AI questions: {e}")

        return snapshots[:count]

    def _from_bank(
        self,
        scope: QuestionScope,
        difficulty: Difficulty,
        count: int,
        exclude_ids: Iterable[int],
    ) -> List[Dict[str, Any]]:
        query = (
            self.db.query(Question)
            .join(Topic, Topic.id == Question.topic_id)
            .options(selectinload(Question.options), selectinload(Question.topic))
            .filter(
                Question.is_active.is_(True),
                Question.difficulty == Difficulty(difficulty),
                Topic.subject_id == scope.subject_id,
            )
        )
        if scope.topic_id is not None:
            query = query.filter(Question.topic_id == scope.topic_id)
        if scope.subtopic_id is not None:
            query = query.filter(Question.subtopic_id == scope.subtopic_id)

        excluded = list(exclude_ids)
        if excluded:
            query = query.filter(Question.id.notin_(excluded))

        rows = query.order_by(Question.id).all()
        self.rng.shuffle(rows)

        snapshots = []
        for row in rows:
            snapshot = question_snapshot(row)
            if snapshot is not None:
                snapshots.append(snapshot)
            if len(snapshots) >= count:
                break
        return snapshots

    def select_for_session(
        self,
        scope: QuestionScope,
        starting_difficulty: Difficulty,
        count: int,
        adaptive_mode: bool,
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """
        Pick the questions for a new session plus the adaptation reserve.

        Questions are seeded at the starting difficulty; nearby tiers fill any
        gap. With adaptive mode on, up to ``count`` extra questions per tier
        are kept in reserve for difficulty swaps.

        Raises:
            NoQuestionsAvailableError: If fewer than ``count`` questions exist for the scope
        """
        selected: List[Dict[str, Any]] = []
        for tier in tiers_by_distance(starting_difficulty):
            missing = count - len(selected)
            if missing <= 0:
                break
            selected.extend(
                self.fetch_questions(
                    scope,
                    tier,
                    missing,
                    exclude_ids=[q["id"] for q in selected],
                    # Only generate at the starting tier
                    allow_generation=(tier == Difficulty(starting_difficulty)),
                )
            )

        if len(selected) < count:
            raise NoQuestionsAvailableError(
                f"Only {len(selected)} question(s) available for this scope, {count} requested"
            )

        reserve: List[Dict[str, Any]] = []
        if adaptive_mode:
            used = [q["id"] for q in selected]
            for tier in TIER_ORDER:
                extra = self.fetch_questions(
                    scope, tier, count, exclude_ids=used, allow_generation=False
                )
                used.extend(q["id"] for q in extra)
                reserve.extend(extra)

        logger.info(
            f"Selected {len(selected)} questions ({len(reserve)} in reserve) "
            f"for subject {scope.subject_id} at {Difficulty(starting_difficulty).value}"
        )
        return selected, reserve

    # ============= Generation =============

    def generate_and_store(
        self,
        scope: QuestionScope,
        difficulty: Difficulty,
        count: int,
    ) -> List[Dict[str, Any]]:
        """
        Generate questions with the LLM and persist them in the bank.

        Raises:
            InvalidConfigError: Unknown scope
            QuestionGenerationError: The LLM produced nothing usable
        """
        context = self.resolve_scope(scope)
        topic_id = self._target_topic_id(scope)

        generator = self.generator_factory()
        generated = generator.generate_questions(context, count, difficulty)

        stored: List[Question] = []
        for item in generated:
            question = Question(
                topic_id=topic_id,
                subtopic_id=scope.subtopic_id,
                stem=item.question,
                explanation=item.explanation or None,
                difficulty=Difficulty(item.difficulty),
                estimated_time=settings.DEFAULT_ESTIMATED_TIME,
                is_active=True,
                is_ai_generated=True,
                ai_prompt=f"AI generated for subject {scope.subject_id}",
            )
            question.options = [
                QuestionOption(text=text, is_correct=(i == item.correct_answer), option_order=i)
                for i, text in enumerate(item.options)
            ]
            self.db.add(question)
            stored.append(question)

        self.db.commit()
        for question in stored:
            self.db.refresh(question)

        logger.info(f"Stored {len(stored)} AI-generated questions in topic {topic_id}")
        return [s for s in (question_snapshot(q) for q in stored) if s is not None]

    def _target_topic_id(self, scope: QuestionScope) -> int:
        """Topic that generated questions are filed under."""
        if scope.topic_id is not None:
            return scope.topic_id
        if scope.subtopic_id is not None:
            subtopic = self.db.query(Subtopic).filter(Subtopic.id == scope.subtopic_id).first()
            return subtopic.topic_id
        topic = (
            self.db.query(Topic)
            .filter(Topic.subject_id == scope.subject_id, Topic.name == "General")
            .first()
        )
        if not topic:
            topic = Topic(subject_id=scope.subject_id, name="General")
            self.db.add(topic)
            self.db.flush()
        return topic.id
