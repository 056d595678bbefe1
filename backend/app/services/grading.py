"""
Mock Exam Engine - Grading Engine
Pure, deterministic scoring of a final answer set against an exam's questions.

No storage and no clock: the same (questions, answers, thresholds) always
produce the same GradingResult. Subjective questions are never scored here;
their marks arrive from the human-review workflow as external grades.
"""
import re
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.models.mock_exam import QuestionType
from app.services.errors import GradingError

CHOICE_TYPES = {QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE}
FREE_TEXT_TYPES = {QuestionType.LONG_ANSWER, QuestionType.ESSAY}

FAIL_GRADE = "F"
PERCENTAGE_DECIMALS = 2

_WHITESPACE = re.compile(r"\s+")


# ============================================================================
# Inputs
# ============================================================================

@dataclass(frozen=True)
class GradableQuestion:
    """The parts of a question the engine needs."""
    question_id: Hashable
    question_type: str
    marks: float
    correct_answer: str | None = None

    @property
    def kind(self) -> QuestionType | None:
        """Known question type, or None for types the engine has no rules for."""
        try:
            return QuestionType(self.question_type)
        except ValueError:
            return None

    @property
    def has_key(self) -> bool:
        return bool(self.correct_answer and self.correct_answer.strip())

    @property
    def is_objective(self) -> bool:
        kind = self.kind
        if kind in CHOICE_TYPES:
            return True
        if kind in FREE_TEXT_TYPES:
            return False
        # Keyable text types and unknown types: objective exactly when keyed
        return self.has_key


@dataclass(frozen=True)
class GradableAnswer:
    """A stored answer plus, for subjective questions, a reviewer's marks."""
    value: Any = None
    external_marks: float | None = None


# Tagged answer payloads, one per family of question types

@dataclass(frozen=True)
class ChoiceAnswer:
    """Selected option key of a multiple choice / true-false question."""
    key: str


@dataclass(frozen=True)
class TextAnswer:
    """Short free text compared against an exact key."""
    text: str


@dataclass(frozen=True)
class EssayAnswer:
    """Open-ended text left for human review."""
    text: str


ParsedAnswer = ChoiceAnswer | TextAnswer | EssayAnswer


def parse_answer(question: GradableQuestion, value: Any) -> ParsedAnswer | None:
    """
    Interpret a raw stored answer according to its question's type.

    Blank answers count as unanswered and return None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise GradingError(
            f"Answer to question {question.question_id} must be text, "
            f"got {type(value).__name__}"
        )
    if not value.strip():
        return None

    kind = question.kind
    if kind in CHOICE_TYPES:
        return ChoiceAnswer(key=value)
    if kind in FREE_TEXT_TYPES or not question.is_objective:
        return EssayAnswer(text=value)
    return TextAnswer(text=value)


def normalize(answer: ParsedAnswer) -> str:
    """Canonical comparison form of an objective answer."""
    if isinstance(answer, ChoiceAnswer):
        return answer.key.strip().casefold()
    if isinstance(answer, TextAnswer):
        return _WHITESPACE.sub(" ", answer.text.strip()).casefold()
    raise GradingError("Essay answers have no canonical form")


# ============================================================================
# Outputs
# ============================================================================

@dataclass(frozen=True)
class QuestionResult:
    question_id: Hashable
    is_correct: bool | None
    marks_obtained: float
    is_objective: bool
    is_answered: bool


@dataclass(frozen=True)
class GradingResult:
    per_question: tuple[QuestionResult, ...]
    objective_score: float
    subjective_score: float
    subjective_graded: bool
    total_marks_obtained: float
    percentage: float
    grade: str
    correct_count: int
    answered_count: int

    def incorrect_objective(self) -> list[QuestionResult]:
        """Questions with a definitive wrong verdict."""
        return [r for r in self.per_question if r.is_objective and r.is_correct is False]


# ============================================================================
# Engine
# ============================================================================

def resolve_thresholds(
    exam_thresholds: Iterable[Mapping[str, Any]] | None,
    default: Sequence[tuple[str, float]],
) -> list[tuple[str, float]]:
    """
    Turn an exam's stored grade table into (grade, min_percentage) pairs,
    highest band first. Falls back to the configured default table.
    """
    if not exam_thresholds:
        pairs = list(default)
    else:
        try:
            pairs = [
                (str(item["grade"]), float(item["min_percentage"]))
                for item in exam_thresholds
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise GradingError(f"Malformed grade thresholds: {e}")
    return sorted(pairs, key=lambda pair: pair[1], reverse=True)


def letter_grade(
    percentage: float,
    total_marks_obtained: float,
    passing_marks: float,
    thresholds: Sequence[tuple[str, float]],
) -> str:
    """Below passing is always F; otherwise the first band reached."""
    if total_marks_obtained < passing_marks:
        return FAIL_GRADE
    for grade, minimum in thresholds:
        if percentage >= minimum:
            return grade
    return FAIL_GRADE


def _grade_question(question: GradableQuestion, answer: GradableAnswer | None) -> QuestionResult:
    if question.marks is None or question.marks <= 0:
        raise GradingError(f"Question {question.question_id} has non-positive marks")

    parsed = parse_answer(question, answer.value if answer else None)
    external = answer.external_marks if answer else None

    if question.is_objective:
        if external is not None:
            raise GradingError(
                f"Objective question {question.question_id} cannot take external marks"
            )
        if not question.has_key:
            raise GradingError(f"Objective question {question.question_id} has no answer key")
        key = question.correct_answer
        if parsed is None:
            is_correct = False
        else:
            expected = parse_answer(question, key)
            is_correct = normalize(parsed) == normalize(expected)
        return QuestionResult(
            question_id=question.question_id,
            is_correct=is_correct,
            marks_obtained=question.marks if is_correct else 0.0,
            is_objective=True,
            is_answered=parsed is not None,
        )

    # Subjective: marks only once a reviewer supplied them
    if external is not None and not 0 <= external <= question.marks:
        raise GradingError(
            f"External marks {external} out of range for question {question.question_id}"
        )
    return QuestionResult(
        question_id=question.question_id,
        is_correct=None,
        marks_obtained=float(external) if external is not None else 0.0,
        is_objective=False,
        is_answered=parsed is not None,
    )


def grade_submission(
    questions: Sequence[GradableQuestion],
    answers: Mapping[Hashable, GradableAnswer],
    total_marks: float,
    passing_marks: float,
    thresholds: Sequence[tuple[str, float]],
) -> GradingResult:
    """
    Grade a final answer set.

    Args:
        questions: Every question of the exam, in display order
        answers: Current answer per question id (missing = unanswered)
        total_marks: Exam total used as the percentage denominator
        passing_marks: Marks below which the grade is F
        thresholds: (grade, min_percentage) bands, highest first

    Raises:
        GradingError: On malformed input (duplicate or unknown questions,
            bad marks, out-of-range external grades)
    """
    question_ids = [q.question_id for q in questions]
    if len(set(question_ids)) != len(question_ids):
        raise GradingError("Duplicate question ids in exam")
    unknown = set(answers) - set(question_ids)
    if unknown:
        raise GradingError(f"Answers reference {len(unknown)} question(s) outside the exam")
    if total_marks is None or total_marks < 0:
        raise GradingError("Exam total marks must be non-negative")

    results = tuple(_grade_question(q, answers.get(q.question_id)) for q in questions)

    objective_score = sum(r.marks_obtained for r in results if r.is_objective)
    subjective_score = sum(r.marks_obtained for r in results if not r.is_objective)
    subjective_graded = all(
        answers.get(q.question_id) is not None
        and answers[q.question_id].external_marks is not None
        for q in questions
        if not q.is_objective
    )
    total = objective_score + subjective_score
    percentage = round(total / total_marks * 100, PERCENTAGE_DECIMALS) if total_marks else 0.0

    return GradingResult(
        per_question=results,
        objective_score=objective_score,
        subjective_score=subjective_score,
        subjective_graded=subjective_graded,
        total_marks_obtained=total,
        percentage=percentage,
        grade=letter_grade(percentage, total, passing_marks, thresholds),
        correct_count=sum(1 for r in results if r.is_correct is True),
        answered_count=sum(1 for r in results if r.is_answered),
    )
