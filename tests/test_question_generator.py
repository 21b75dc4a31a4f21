import json

import pytest

from examprep.core.agents.assessment import InsightGenerator, QuestionGenerator, ResultAggregator
from examprep.core.agents.assessment.schemas import InsightOutput
from examprep.core.exceptions import QuestionGenerationError
from examprep.models.question import Difficulty

from .conftest import FakeLLM

CONTEXT = {"subject": "Physics", "topic": "Kinematics", "subtopic": None}


def item(**overrides):
    values = {
        "question": "A ball is thrown up at 20 m/s. Time to reach the top?",
        "options": ["1 s", "2 s", "3 s", "4 s"],
        "correct_answer": 1,
        "explanation": "t = u / g.",
        "difficulty": "MEDIUM",
    }
    values.update(overrides)
    return values


def test_parses_fenced_json_and_prompts_with_scope():
    llm = FakeLLM(content="Here you go:\n```json\n" + json.dumps([item()]) + "\n```")
    questions = QuestionGenerator(llm=llm).generate_questions(CONTEXT, 1, Difficulty.MEDIUM)

    assert len(questions) == 1
    assert questions[0].correct_answer == 1
    prompt = llm.calls[0][1]["content"]
    assert "Subject: Physics" in prompt
    assert "Topic: Kinematics" in prompt
    assert "Subtopic" not in prompt


def test_invalid_items_are_skipped_and_difficulty_normalized():
    payload = [
        item(correct_answer=7),
        item(options=["only one"]),
        {"question": "missing fields"},
        item(difficulty="hard"),
        item(difficulty="impossible"),
    ]
    llm = FakeLLM(content=json.dumps(payload))

    questions = QuestionGenerator(llm=llm).generate_questions(CONTEXT, 5, Difficulty.EASY)

    assert [q.difficulty for q in questions] == ["HARD", "EASY"]


def test_results_are_capped_at_count():
    llm = FakeLLM(content=json.dumps([item(), item(), item()]))
    assert len(QuestionGenerator(llm=llm).generate_questions(CONTEXT, 2)) == 2


@pytest.mark.parametrize("content", ["not json at all", json.dumps({"question": "x"}), "[]"])
def test_unusable_responses_raise(content):
    with pytest.raises(QuestionGenerationError):
        QuestionGenerator(llm=FakeLLM(content=content)).generate_questions(CONTEXT, 1)


def test_llm_errors_raise_generation_error():
    llm = FakeLLM(error=TimeoutError("upstream timeout"))
    with pytest.raises(QuestionGenerationError):
        QuestionGenerator(llm=llm).generate_questions(CONTEXT, 1)


def test_insights_format_summary_and_recommendations():
    report = ResultAggregator().aggregate(
        [{"id": 1, "topic_id": 1, "topic_name": "Optics"}],
        [{"question_id": 1, "is_correct": False, "difficulty": "HARD", "time_spent": 40}],
        "ALL_ANSWERED",
    )
    llm = FakeLLM(structured=InsightOutput(summary="Work on optics.", recommendations=["Ray diagrams", " "]))

    text = InsightGenerator(llm=llm).generate_insights(report, "ALL_ANSWERED")

    assert text == "Work on optics.\n- Ray diagrams"
    prompt = llm.calls[0][1].content
    assert "Optics: 0% over 1 question(s)" in prompt


def test_insights_return_none_on_failure():
    report = ResultAggregator().aggregate([], [])
    llm = FakeLLM(error=RuntimeError("boom"))
    assert InsightGenerator(llm=llm).generate_insights(report) is None
