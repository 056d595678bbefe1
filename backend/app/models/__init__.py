"""Mock Exam Engine - Models initialization."""
from app.models.mock_exam import (
    MockExam,
    MockExamQuestion,
    MockExamSession,
    MockExamAnswer,
    ExamStatus,
    QuestionType,
    SessionState,
)
from app.models.mistake_log import MistakeLog
from app.models.score_history import ScoreHistory


__all__ = [
    # Exam catalog
    "MockExam",
    "MockExamQuestion",
    "ExamStatus",
    "QuestionType",
    # Attempts
    "MockExamSession",
    "MockExamAnswer",
    "SessionState",
    # Derived records
    "MistakeLog",
    "ScoreHistory",
]
