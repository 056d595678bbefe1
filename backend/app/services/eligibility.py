"""
Mock Exam Engine - Eligibility Gate
Decides whether a user may start or resume an exam attempt
"""
from dataclasses import dataclass
from datetime import datetime, timezone

from app.models.mock_exam import ExamStatus, MockExam, MockExamSession, SessionState
from app.services.errors import (
    AlreadySubmittedError,
    ExamClosedError,
    ExamNotFoundError,
    ExamNotOpenError,
)


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of the gate: create a new session, or resume the given one."""
    state: SessionState
    session: MockExamSession | None = None

    @property
    def should_resume(self) -> bool:
        return self.state is SessionState.IN_PROGRESS


def as_utc(value: datetime) -> datetime:
    """Naive timestamps (SQLite) are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_eligibility(
    exam: MockExam | None,
    session: MockExamSession | None,
    now: datetime,
) -> EligibilityDecision:
    """
    Gate an attempt. Checks run in a fixed order:

    1. exam exists and is published
    2. now is inside [start_date, end_date]
    3. an existing session is not already submitted
    4. an existing in-progress session is resumed

    Raises:
        ExamNotFoundError: Unknown or unpublished exam
        ExamNotOpenError: Before start_date
        ExamClosedError: After end_date
        AlreadySubmittedError: The user's session is terminal
    """
    if exam is None or exam.status != ExamStatus.PUBLISHED.value:
        raise ExamNotFoundError()

    now = as_utc(now)
    if exam.start_date is not None and now < as_utc(exam.start_date):
        raise ExamNotOpenError()
    if exam.end_date is not None and now > as_utc(exam.end_date):
        raise ExamClosedError()

    if session is None:
        return EligibilityDecision(state=SessionState.ABSENT)

    if session.lifecycle is SessionState.SUBMITTED:
        raise AlreadySubmittedError()

    return EligibilityDecision(state=SessionState.IN_PROGRESS, session=session)
