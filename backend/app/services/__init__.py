"""Mock Exam Engine - Services initialization."""
from app.services.errors import (
    MockExamError,
    NotFoundError,
    ExamNotFoundError,
    SessionNotFoundError,
    QuestionNotFoundError,
    OutOfWindowError,
    ExamNotOpenError,
    ExamClosedError,
    AlreadySubmittedError,
    NotSubmittedError,
    InvalidGradeError,
    GradingError,
    DerivedWriteFailure,
)
from app.services.exam_catalog import ExamCatalog
from app.services.exam_session import SessionStore
from app.services.answer_store import AnswerStore, AnswerInput
from app.services.submission import SubmissionCoordinator, SubmissionOutcome

__all__ = [
    # Errors
    "MockExamError",
    "NotFoundError",
    "ExamNotFoundError",
    "SessionNotFoundError",
    "QuestionNotFoundError",
    "OutOfWindowError",
    "ExamNotOpenError",
    "ExamClosedError",
    "AlreadySubmittedError",
    "NotSubmittedError",
    "InvalidGradeError",
    "GradingError",
    "DerivedWriteFailure",
    # Services
    "ExamCatalog",
    "SessionStore",
    "AnswerStore",
    "AnswerInput",
    "SubmissionCoordinator",
    "SubmissionOutcome",
]
