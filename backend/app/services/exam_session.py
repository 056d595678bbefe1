"""
Mock Exam Engine - Session Store
Owns the one-session-per-(user, exam) record and its lifecycle:

    absent --start--> in_progress --mark_submitted--> submitted

No transition leaves submitted. The submit transition is a compare-and-set
on the stored state, so two racing submissions produce exactly one winner.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.mock_exam import MockExam, MockExamSession, SessionState
from app.services.eligibility import as_utc, check_eligibility
from app.services.errors import AlreadySubmittedError, MockExamError, SessionNotFoundError
from app.services.exam_catalog import ExamCatalog
from app.services.grading import GradingResult

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Service for session lifecycle operations."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        enforce_server_timer: bool | None = None,
    ):
        self.db = db
        self.clock = clock
        self.catalog = ExamCatalog(db)
        if enforce_server_timer is None:
            enforce_server_timer = settings.ENFORCE_SERVER_TIMER
        self.enforce_server_timer = enforce_server_timer

    async def find(self, user_id: uuid.UUID, exam_id: uuid.UUID) -> MockExamSession | None:
        """The user's session for an exam, if one exists."""
        result = await self.db.execute(
            select(MockExamSession).where(
                MockExamSession.exam_id == exam_id,
                MockExamSession.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_owned(self, user_id: uuid.UUID, session_id: uuid.UUID) -> MockExamSession:
        """
        Load a session belonging to the caller.

        Raises:
            SessionNotFoundError: Unknown id or owned by another user
        """
        session = await self.db.get(MockExamSession, session_id)
        if session is None or session.user_id != user_id:
            raise SessionNotFoundError()
        return session

    async def sessions_by_exam(
        self,
        user_id: uuid.UUID,
        exam_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, MockExamSession]:
        """The caller's sessions keyed by exam id."""
        if not exam_ids:
            return {}
        result = await self.db.execute(
            select(MockExamSession).where(
                MockExamSession.user_id == user_id,
                MockExamSession.exam_id.in_(exam_ids),
            )
        )
        return {s.exam_id: s for s in result.scalars().all()}

    async def start(
        self,
        user_id: uuid.UUID,
        exam_id: uuid.UUID,
    ) -> tuple[MockExamSession, bool]:
        """
        Start an attempt, or resume the one already in progress.

        Resuming never resets the countdown.

        Returns:
            (session, resumed)

        Raises:
            ExamNotFoundError, OutOfWindowError, AlreadySubmittedError
        """
        now = self.clock()
        exam = await self.catalog.get_exam(exam_id)
        existing = await self.find(user_id, exam_id)
        decision = check_eligibility(exam, existing, now)

        if decision.should_resume:
            logger.info(f"Resuming session {decision.session.id} for user {user_id}")
            return decision.session, True

        session = MockExamSession(
            exam_id=exam.id,
            user_id=user_id,
            state=SessionState.IN_PROGRESS.value,
            time_remaining_seconds=self._duration_seconds(exam),
            started_at=now,
            subjective_graded=False,
        )
        self.db.add(session)
        try:
            await self.db.flush()
        except IntegrityError:
            # A concurrent start won the unique (exam, user) slot
            await self.db.rollback()
            await self.db.refresh(exam)
            existing = await self.find(user_id, exam_id)
            if existing is None:
                raise
            decision = check_eligibility(exam, existing, now)
            return decision.session, True

        await self.db.commit()
        logger.info(f"Started session {session.id} for user {user_id} on exam {exam_id}")
        return session, False

    async def update_time(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        time_remaining: int,
    ) -> MockExamSession:
        """
        Persist the client's countdown so a reload does not lose it.

        The value is stored as reported unless server-side timer
        enforcement is enabled, in which case it is clamped to what
        started_at + duration allows.
        """
        if time_remaining < 0:
            raise MockExamError("Time remaining must be non-negative")

        session = await self.get_owned(user_id, session_id)
        if session.is_submitted:
            raise AlreadySubmittedError("Exam already submitted")

        if self.enforce_server_timer:
            exam = await self.catalog.get_exam(session.exam_id)
            elapsed = (as_utc(self.clock()) - as_utc(session.started_at)).total_seconds()
            allowed = max(0, self._duration_seconds(exam) - int(elapsed))
            time_remaining = min(time_remaining, allowed)

        try:
            await self.guard_in_progress(session.id)
            session.time_remaining_seconds = time_remaining
            await self.db.commit()
        except AlreadySubmittedError:
            await self.db.rollback()
            raise
        return session

    async def guard_in_progress(self, session_id: uuid.UUID) -> None:
        """
        Re-check the stored state inside the caller's transaction and hold
        the session row until it ends.

        A conditional touch of the row: it takes the row's write lock, so a
        concurrent submission either committed before (no row matches) or
        waits for the caller to finish.

        Raises:
            AlreadySubmittedError: The session is no longer in progress
        """
        outcome = await self.db.execute(
            update(MockExamSession)
            .where(
                MockExamSession.id == session_id,
                MockExamSession.state == SessionState.IN_PROGRESS.value,
            )
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            raise AlreadySubmittedError("Exam already submitted")

    async def mark_submitted(
        self,
        session_id: uuid.UUID,
        result: GradingResult,
        submitted_at: datetime,
    ) -> bool:
        """
        Move an in-progress session to submitted with its scores.

        Compare-and-set: only a row still in_progress is updated. Returns
        False when another submission already made the transition. The
        caller owns the transaction.
        """
        outcome = await self.db.execute(
            update(MockExamSession)
            .where(
                MockExamSession.id == session_id,
                MockExamSession.state == SessionState.IN_PROGRESS.value,
            )
            .values(
                state=SessionState.SUBMITTED.value,
                submitted_at=submitted_at,
                **self._score_fields(result),
            )
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount == 1

    async def apply_scores(self, session: MockExamSession, result: GradingResult) -> None:
        """Overwrite the score fields of a submitted session after review."""
        for field, value in self._score_fields(result).items():
            setattr(session, field, value)
        await self.db.flush()

    @staticmethod
    def _score_fields(result: GradingResult) -> dict:
        return {
            "total_marks_obtained": result.total_marks_obtained,
            "percentage": result.percentage,
            "grade": result.grade,
            "objective_score": result.objective_score,
            "subjective_score": result.subjective_score,
            "subjective_graded": result.subjective_graded,
        }

    @staticmethod
    def _duration_seconds(exam: MockExam) -> int:
        return (exam.duration_minutes or settings.DEFAULT_DURATION_MINUTES) * 60
