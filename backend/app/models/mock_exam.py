"""
Mock Exam Engine - Mock Exam Models
SQLAlchemy models for exams, questions, attempt sessions and answers
"""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType


class ExamStatus(str, Enum):
    """Publication status of an exam."""
    DRAFT = "draft"
    PUBLISHED = "published"


class QuestionType(str, Enum):
    """Question types understood by the grading engine."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    SHORT_ANSWER = "short_answer"
    LONG_ANSWER = "long_answer"
    ESSAY = "essay"


class SessionState(str, Enum):
    """
    Lifecycle of one user's attempt at one exam.

    ABSENT is never stored; it is the state of a (user, exam) pair with no row.
    """
    ABSENT = "absent"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class MockExam(Base):
    """Immutable exam definition, owned by the authoring workflow."""

    __tablename__ = "mock_exams"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    exam_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)
    grade_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timing and marking
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_marks: Mapped[float] = mapped_column(Float, default=0)
    passing_marks: Mapped[float] = mapped_column(Float, default=0)

    # Availability window (either bound may be open)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    shuffle_questions: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=ExamStatus.DRAFT.value, index=True)

    # Optional per-exam letter grade table: [{"grade": "A", "min_percentage": 90}, ...]
    grade_thresholds: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    # Relationships
    questions: Mapped[list["MockExamQuestion"]] = relationship(
        "MockExamQuestion",
        back_populates="exam",
        order_by="MockExamQuestion.question_number",
        cascade="all, delete-orphan"
    )


class MockExamQuestion(Base):
    """A question belonging to exactly one exam."""

    __tablename__ = "mock_exam_questions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    exam_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mock_exams.id", ondelete="CASCADE"),
        index=True
    )
    question_number: Mapped[int] = mapped_column(Integer)
    question_type: Mapped[str] = mapped_column(String(30))
    question: Mapped[str] = mapped_column(Text)

    # Choice set for choice types: {"A": "...", "B": "..."}. Key order is not
    # stored; options are presented sorted by key.
    options: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    answer_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    marks: Mapped[float] = mapped_column(Float, default=1)
    topic: Mapped[str | None] = mapped_column(String(200), nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Relationships
    exam: Mapped["MockExam"] = relationship("MockExam", back_populates="questions")


class MockExamSession(Base):
    """One user's single attempt at one exam."""

    __tablename__ = "mock_exam_sessions"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("exam_id", "user_id", name="uq_mock_exam_sessions_exam_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    exam_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mock_exams.id", ondelete="CASCADE"),
        index=True
    )
    # Users live in the auth service; no local FK
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)

    state: Mapped[str] = mapped_column(String(20), default=SessionState.IN_PROGRESS.value)
    time_remaining_seconds: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Filled in by grading
    total_marks_obtained: Mapped[float | None] = mapped_column(Float, nullable=True)
    percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade: Mapped[str | None] = mapped_column(String(10), nullable=True)
    objective_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    subjective_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    subjective_graded: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    @property
    def lifecycle(self) -> SessionState:
        return SessionState(self.state)

    @property
    def is_submitted(self) -> bool:
        return self.lifecycle is SessionState.SUBMITTED


class MockExamAnswer(Base):
    """Current answer of a session to one question (last write wins)."""

    __tablename__ = "mock_exam_answers"
    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_mock_exam_answers_session_question"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mock_exam_sessions.id", ondelete="CASCADE"),
        index=True
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mock_exam_questions.id", ondelete="CASCADE"),
        index=True
    )
    user_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # Filled in by grading / human review
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    marks_obtained: Mapped[float] = mapped_column(Float, default=0)
    grader_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    # True once a reviewer supplied marks for a subjective question
    externally_graded: Mapped[bool] = mapped_column(Boolean, default=False)
