"""
Prompts for adaptive assessment question generation and insights.
"""

QUESTION_GENERATION_SYSTEM_PROMPT = """You are an expert question setter for competitive entrance exams (JEE, NEET, CLAT).

Create high-quality, exam-level multiple choice questions.

Guidelines:
- Exactly 4 options per question, only one of them correct
- Questions must be self-contained and unambiguous
- Match the requested difficulty level
- Include a concise worked explanation for the correct option"""


QUESTION_GENERATION_USER_PROMPT = """Generate {count} multiple choice questions.

{context}
Difficulty: {difficulty}

Return ONLY a JSON array, no other text:

```json
[
  {{
    "question": "Question text",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correct_answer": 0,
    "explanation": "Why the correct option is right",
    "difficulty": "{difficulty}"
  }}
]
```

`correct_answer` is the 0-based index of the correct option."""


INSIGHT_SYSTEM_PROMPT = """You are an expert exam-preparation mentor.

Analyze a student's adaptive test performance and give short, specific, encouraging advice.
Prioritize the weakest areas and suggest concrete practice strategies."""


INSIGHT_USER_PROMPT_TEMPLATE = """## Performance Summary
- Score: {score}% ({correct}/{total} correct)
- Average time per question: {average_time:.0f} seconds
- Session ended: {completion_reason}

## Difficulty Performance
- Easy: {easy_correct}/{easy_total}
- Medium: {medium_correct}/{medium_total}
- Hard: {hard_correct}/{hard_total}

## Topic Performance
{topic_breakdown}

## Weaknesses Identified
{weaknesses}

Respond in JSON with a 2-3 sentence "summary" and up to 5 "recommendations" strings."""
