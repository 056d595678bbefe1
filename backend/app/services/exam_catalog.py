"""
Mock Exam Engine - Exam Catalog
Read-only access to exam definitions and their ordered question sets
"""
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.mock_exam import ExamStatus, MockExam, MockExamQuestion


class ExamCatalog:
    """Reads exams authored elsewhere. Never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_exam(self, exam_id: uuid.UUID) -> MockExam | None:
        """Get an exam by ID regardless of status."""
        return await self.db.get(MockExam, exam_id)

    async def list_published(self) -> list[MockExam]:
        """Published exams, newest first."""
        result = await self.db.execute(
            select(MockExam)
            .where(MockExam.status == ExamStatus.PUBLISHED.value)
            .order_by(MockExam.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_questions(self, exam_id: uuid.UUID) -> list[MockExamQuestion]:
        """Questions of an exam ordered by question_number."""
        result = await self.db.execute(
            select(MockExamQuestion)
            .where(MockExamQuestion.exam_id == exam_id)
            .order_by(MockExamQuestion.question_number.asc())
        )
        return list(result.scalars().all())

    async def get_question(
        self,
        exam_id: uuid.UUID,
        question_id: uuid.UUID,
    ) -> MockExamQuestion | None:
        """A question, only if it belongs to the given exam."""
        result = await self.db.execute(
            select(MockExamQuestion).where(
                MockExamQuestion.id == question_id,
                MockExamQuestion.exam_id == exam_id,
            )
        )
        return result.scalar_one_or_none()
