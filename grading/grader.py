"""
Answer normalizer and grader.

Correct answers are stored in one of three encodings: an option index
(``1`` or ``"1"``), a single text, or a list of acceptable texts. Each
question's correct answer is resolved once into a :class:`CorrectAnswer`
and then into a set of normalized acceptable texts, so comparisons never
branch on the stored type.

Only multiple-choice and true/false questions are auto-graded. Everything
else, and any question without a correct answer, waits for an instructor.
"""
import re
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import FrozenSet, List, NamedTuple, Optional

from courses.choices import AUTO_GRADABLE_TYPES

_INDEX_RE = re.compile(r"^\d+$")


class AnswerKind(Enum):
    INDEX = "index"
    TEXT = "text"
    TEXT_SET = "text_set"


class CorrectAnswer(NamedTuple):
    kind: AnswerKind
    value: object


class GradedAnswer(NamedTuple):
    is_correct: Optional[bool]
    points_earned: float


class GradingOutcome(NamedTuple):
    answers: List[dict]
    score: float
    requires_manual_grading: bool


def normalize_text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip().lower()


def _as_index(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INDEX_RE.match(value.strip()):
        return int(value.strip())
    return None


def resolve_correct_answer(question) -> Optional[CorrectAnswer]:
    raw = question.correct_answer
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return CorrectAnswer(AnswerKind.TEXT_SET, tuple(raw))
    index = _as_index(raw)
    if index is not None and question.options and 0 <= index < len(question.options):
        return CorrectAnswer(AnswerKind.INDEX, index)
    return CorrectAnswer(AnswerKind.TEXT, raw)


def _option_text(question, value):
    """Resolve an option index to its text; anything else is returned unchanged."""
    index = _as_index(value)
    if index is not None and question.options and 0 <= index < len(question.options):
        return question.options[index]
    return value


def acceptable_texts(question) -> Optional[FrozenSet[str]]:
    """Canonical set of normalized texts that count as a correct answer."""
    correct = resolve_correct_answer(question)
    if correct is None:
        return None
    if correct.kind is AnswerKind.INDEX:
        return frozenset([normalize_text(question.options[correct.value])])
    if correct.kind is AnswerKind.TEXT_SET:
        return frozenset(normalize_text(_option_text(question, v)) for v in correct.value)
    return frozenset([normalize_text(correct.value)])


def normalize_answer(question, raw_answer) -> FrozenSet[str]:
    values = raw_answer if isinstance(raw_answer, (list, tuple)) else [raw_answer]
    return frozenset(
        normalize_text(_option_text(question, v)) for v in values if v is not None and v != ""
    )


def requires_manual_grading(question) -> bool:
    return question.question_type not in AUTO_GRADABLE_TYPES or question.correct_answer is None


def grade(question, raw_answer) -> GradedAnswer:
    """
    Grade one answer.

    Returns ``is_correct=None`` and zero points for questions that need an
    instructor. A list answer is correct only if every chosen value is
    acceptable.
    """
    if question is None:
        return GradedAnswer(False, 0)
    if requires_manual_grading(question):
        return GradedAnswer(None, 0)
    answer = normalize_answer(question, raw_answer)
    is_correct = bool(answer) and answer <= acceptable_texts(question)
    return GradedAnswer(is_correct, question.points if is_correct else 0)


def grade_answers(questions, answers) -> GradingOutcome:
    """
    Grade a submission's answers against the assessment's ordered questions.

    ``answers`` is a list of ``{"question_index": int, "answer": ...}``. An
    index with no matching question is stored as incorrect with zero points.
    """
    graded = []
    score = 0
    for item in answers:
        index = item.get("question_index")
        question = questions[index] if isinstance(index, int) and 0 <= index < len(questions) else None
        result = grade(question, item.get("answer"))
        score += result.points_earned
        graded.append({
            "question_index": index,
            "answer": item.get("answer"),
            "is_correct": result.is_correct,
            "points_earned": result.points_earned,
        })
    return GradingOutcome(
        answers=graded,
        score=score,
        requires_manual_grading=any(requires_manual_grading(q) for q in questions),
    )


def score_percentage(score, total_points) -> int:
    """round(score / total_points * 100), half up and clamped to [0, 100]."""
    if not total_points:
        return 0
    value = (Decimal(str(score)) * 100 / Decimal(str(total_points))).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return max(0, min(100, int(value)))
