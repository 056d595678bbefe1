"""
Mock Exam Engine - Service Errors
Exception taxonomy raised by the exam services and rendered by the API layer
"""
from fastapi import status


class MockExamError(Exception):
    """Base error for the mock exam engine."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Mock exam request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(MockExamError):
    """Exam, session or question absent or not owned by the caller."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ExamNotFoundError(NotFoundError):
    default_message = "Exam not found"


class SessionNotFoundError(NotFoundError):
    default_message = "Session not found"


class QuestionNotFoundError(NotFoundError):
    default_message = "Question not found"


class OutOfWindowError(MockExamError):
    """Attempt requested outside the exam's active date range."""
    default_message = "Exam is not available"


class ExamNotOpenError(OutOfWindowError):
    default_message = "Exam has not started yet"


class ExamClosedError(OutOfWindowError):
    default_message = "Exam has expired"


class AlreadySubmittedError(MockExamError):
    """Mutating call against a submitted session."""
    default_message = "You have already submitted this exam"


class NotSubmittedError(MockExamError):
    """Results requested for a session that is still in progress."""
    default_message = "Exam has not been submitted yet"


class InvalidGradeError(MockExamError):
    """A reviewer-supplied grade that cannot be applied."""
    default_message = "Invalid grade"


class GradingError(MockExamError):
    """The grading engine rejected its input."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to grade exam"


class DerivedWriteFailure(MockExamError):
    """A mistake-log or score-history write failed after submission committed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to record submission analytics"
