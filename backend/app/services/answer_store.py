"""
Mock Exam Engine - Answer Store
Per-(session, question) answer records with last-write-wins upserts
"""
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.mock_exam import MockExamAnswer, MockExamSession
from app.services.errors import AlreadySubmittedError, QuestionNotFoundError
from app.services.exam_catalog import ExamCatalog
from app.services.exam_session import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerInput:
    """One answer as sent by the client."""
    question_id: uuid.UUID
    answer: str | None
    time_spent: int = 0


class AnswerStore:
    """
    Idempotent answer capture.

    Saving the same (session, question) again overwrites the value; a retry
    after a timeout therefore lands on the same row.
    """

    def __init__(self, db: AsyncSession, sessions: SessionStore | None = None):
        self.db = db
        self.sessions = sessions or SessionStore(db)
        self.catalog = ExamCatalog(db)

    async def save_answer(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        question_id: uuid.UUID,
        value: str | None,
        time_spent: int = 0,
    ) -> MockExamAnswer:
        """
        Save the caller's current answer to a question.

        Raises:
            SessionNotFoundError: Unknown session or not the caller's
            AlreadySubmittedError: Session is submitted; answers are frozen
            QuestionNotFoundError: Question is not part of the session's exam
        """
        session = await self.sessions.get_owned(user_id, session_id)
        if session.is_submitted:
            raise AlreadySubmittedError("Exam already submitted")

        try:
            # The stored state decides; a submission may have landed since the read
            await self.sessions.guard_in_progress(session.id)
            answer = await self._upsert(session, AnswerInput(question_id, value, time_spent))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return answer

    async def save_many(
        self,
        session: MockExamSession,
        answers: Iterable[AnswerInput],
    ) -> int:
        """
        Upsert a batch of answers for an in-progress session without
        committing. Used by submission for answers the client had buffered.
        """
        if session.is_submitted:
            raise AlreadySubmittedError("Exam already submitted")
        count = 0
        for item in answers:
            await self._upsert(session, item)
            count += 1
        return count

    async def list_answers(self, session_id: uuid.UUID) -> dict[uuid.UUID, MockExamAnswer]:
        """Current answer per question id."""
        result = await self.db.execute(
            select(MockExamAnswer).where(MockExamAnswer.session_id == session_id)
        )
        return {a.question_id: a for a in result.scalars().all()}

    async def _upsert(self, session: MockExamSession, item: AnswerInput) -> MockExamAnswer:
        question = await self.catalog.get_question(session.exam_id, item.question_id)
        if question is None:
            raise QuestionNotFoundError()

        result = await self.db.execute(
            select(MockExamAnswer).where(
                MockExamAnswer.session_id == session.id,
                MockExamAnswer.question_id == item.question_id,
            )
        )
        answer = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)

        if answer is None:
            answer = MockExamAnswer(
                session_id=session.id,
                question_id=item.question_id,
                user_answer=item.answer,
                time_spent_seconds=item.time_spent or 0,
                updated_at=now,
                marks_obtained=0,
                externally_graded=False,
            )
            self.db.add(answer)
        else:
            answer.user_answer = item.answer
            answer.time_spent_seconds = item.time_spent or 0
            answer.updated_at = now

        await self.db.flush()
        return answer
