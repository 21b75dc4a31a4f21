"""
Adaptive assessment agent modules.
"""
from .difficulty_policy import DifficultyPolicy, DifficultyDecision
from .result_aggregator import ResultAggregator
from .question_generator import QuestionGenerator
from .insight_generator import InsightGenerator

__all__ = [
    "DifficultyPolicy",
    "DifficultyDecision",
    "ResultAggregator",
    "QuestionGenerator",
    "InsightGenerator",
]
