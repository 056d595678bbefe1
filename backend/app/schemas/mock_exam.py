"""
Mock Exam Engine - Mock Exam Schemas
Pydantic schemas for exam attempt requests and responses
"""
import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Exams & Questions
# ============================================================================

class ExamResponse(BaseModel):
    """Public exam definition."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str | None = None
    exam_type: str | None = None
    subject: str | None = None
    grade_level: int | None = None
    instructions: str | None = None
    duration_minutes: int | None = None
    total_marks: float
    passing_marks: float
    start_date: datetime | None = None
    end_date: datetime | None = None
    shuffle_questions: bool = False
    created_at: datetime | None = None


class QuestionPublic(BaseModel):
    """A question as shown during an attempt (no answer key)."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    question_number: int
    question_type: str
    question: str
    options: dict[str, str] | None = None
    marks: float
    topic: str | None = None
    difficulty: str | None = None

    @field_validator("options")
    @classmethod
    def order_options(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        # JSONB keeps no key order; options display sorted by key (A, B, C, ...)
        if v is None:
            return v
        return dict(sorted(v.items()))


class QuestionWithAnswer(QuestionPublic):
    """A question with the caller's saved answer, for resuming."""
    user_answer: str | None = None
    is_answered: bool = False


class QuestionResult(QuestionPublic):
    """A question after submission, including the key and verdict."""
    correct_answer: str | None = None
    answer_key: str | None = None
    explanation: str | None = None
    user_answer: str | None = None
    is_correct: bool | None = None
    marks_obtained: float = 0
    grader_feedback: str | None = None


# ============================================================================
# Sessions
# ============================================================================

class SessionResponse(BaseModel):
    """An attempt session."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    exam_id: uuid.UUID
    state: str
    time_remaining_seconds: int
    started_at: datetime
    submitted_at: datetime | None = None
    total_marks_obtained: float | None = None
    percentage: float | None = None
    grade: str | None = None
    objective_score: float | None = None
    subjective_score: float | None = None
    subjective_graded: bool = False


class ExamListItem(ExamResponse):
    """An exam with the caller's session embedded."""
    session: SessionResponse | None = None


class StartSessionResponse(BaseModel):
    session: SessionResponse
    resumed: bool


class AttemptResponse(BaseModel):
    """Everything needed to render the attempt UI."""
    exam: ExamResponse
    questions: list[QuestionPublic]
    existing_session: SessionResponse | None = None


class SessionDetailResponse(BaseModel):
    session: SessionResponse
    questions: list[QuestionWithAnswer]


# ============================================================================
# Answers & Time
# ============================================================================

class SaveAnswerRequest(BaseModel):
    question_id: uuid.UUID
    answer: str | None = None
    time_spent: Annotated[int, Field(ge=0)] = 0


class UpdateTimeRequest(BaseModel):
    time_remaining: Annotated[int, Field(ge=0, description="Seconds left on the client countdown")]


class SuccessResponse(BaseModel):
    success: bool = True


# ============================================================================
# Submission & Results
# ============================================================================

class SubmitRequest(BaseModel):
    """Answers the client buffered but had not saved yet."""
    answers: list[SaveAnswerRequest] = Field(default_factory=list)


class QuestionGrade(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: uuid.UUID
    is_correct: bool | None
    marks_obtained: float


class GradingResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    per_question: list[QuestionGrade]
    objective_score: float
    subjective_score: float
    subjective_graded: bool
    total_marks_obtained: float
    percentage: float
    grade: str
    correct_count: int
    answered_count: int


class SubmitResponse(BaseModel):
    success: bool = True
    result: GradingResultResponse
    session: SessionResponse


class ResultsResponse(BaseModel):
    session: SessionResponse
    exam: ExamResponse
    questions: list[QuestionResult]


class RecordGradeRequest(BaseModel):
    """Reviewer-supplied marks for a subjective question."""
    question_id: uuid.UUID
    marks_obtained: Annotated[float, Field(ge=0)]
    feedback: str | None = None


class RecordGradeResponse(BaseModel):
    success: bool = True
    session: SessionResponse
