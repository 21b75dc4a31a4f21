"""
Difficulty adaptation policy for adaptive tests.

Escalates one tier after two consecutive correct answers, drops one tier after
an incorrect answer and otherwise holds. Tiers are EASY < MEDIUM < HARD.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from examprep.models.question import Difficulty

logger = logging.getLogger(__name__)

TIER_ORDER: List[Difficulty] = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]

QUICK_RATIO = 0.5
SLOW_RATIO = 1.5


class DifficultyDecision(BaseModel):
    """Difficulty chosen for the next question and why."""
    difficulty: Difficulty
    reason: str


def step_up(difficulty: Difficulty) -> Difficulty:
    idx = TIER_ORDER.index(difficulty)
    return TIER_ORDER[min(idx + 1, len(TIER_ORDER) - 1)]


def step_down(difficulty: Difficulty) -> Difficulty:
    idx = TIER_ORDER.index(difficulty)
    return TIER_ORDER[max(idx - 1, 0)]


def pace_note(answer: Dict[str, Any]) -> Optional[str]:
    """Describe how the time spent compares with the question's estimate."""
    estimated = answer.get("estimated_time") or 0
    spent = answer.get("time_spent") or 0
    if estimated <= 0:
        return None
    if spent < estimated * QUICK_RATIO:
        return "answered quickly"
    if spent > estimated * SLOW_RATIO:
        return "answered slowly"
    return None


class DifficultyPolicy:
    """
    Chooses the difficulty of the next question from the answer history.

    When adaptive mode is off the starting difficulty is kept for the whole
    session.
    """

    def __init__(self, starting_difficulty: Difficulty, adaptive_mode: bool = True):
        self.starting_difficulty = Difficulty(starting_difficulty)
        self.adaptive_mode = adaptive_mode

    def initial(self) -> DifficultyDecision:
        return DifficultyDecision(difficulty=self.starting_difficulty, reason="starting difficulty")

    def decide(self, current: Difficulty, history: Sequence[Dict[str, Any]]) -> DifficultyDecision:
        """
        Pick the next difficulty.

        Args:
            current: Difficulty tier of the question just answered
            history: Ordered answer log, each entry with ``is_correct`` and
                optionally ``time_spent`` / ``estimated_time``

        Returns:
            DifficultyDecision with the tier and a human-readable reason
        """
        if not history:
            return self.initial()

        if not self.adaptive_mode:
            return DifficultyDecision(
                difficulty=self.starting_difficulty,
                reason="adaptive mode disabled",
            )

        current = Difficulty(current)
        last = history[-1]

        if not last.get("is_correct"):
            target = step_down(current)
            if target == current:
                reason = f"incorrect answer, already at {current.value}"
            else:
                reason = "incorrect answer"
        elif len(history) >= 2 and history[-2].get("is_correct"):
            target = step_up(current)
            if target == current:
                reason = f"two consecutive correct answers, already at {current.value}"
            else:
                reason = "two consecutive correct answers"
        else:
            target = current
            reason = "correct answer, holding until two in a row"

        note = pace_note(last)
        if note:
            reason = f"{reason} ({note})"

        logger.debug(f"Difficulty {current.value} -> {target.value}: {reason}")
        return DifficultyDecision(difficulty=target, reason=reason)
