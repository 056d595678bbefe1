"""
Mock Exam Engine - Derived Writes
Mistake log and score history writers fed by the submission coordinator.

Both are append-only and idempotent on their source keys: replaying a
submission after a crash leaves exactly one row per (session, question) in
mistake_logs and one row per session in score_history.
"""
import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.mistake_log import MistakeLog
from app.models.score_history import ScoreHistory
from app.services.errors import DerivedWriteFailure

logger = logging.getLogger(__name__)

EXAM_MISTAKE_SOURCE = "exam"
MOCK_EXAM_SCORE_SOURCE = "mock_exam"


class MistakeRecorder:
    """Writes MistakeLog rows for incorrect objective answers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, entries: Sequence[MistakeLog]) -> int:
        """
        Persist new entries, skipping any already recorded for the same
        source and question.

        Returns:
            Number of rows added

        Raises:
            DerivedWriteFailure: The write was rolled back
        """
        if not entries:
            return 0

        try:
            source_ids = {e.source_id for e in entries}
            result = await self.db.execute(
                select(MistakeLog.source_id, MistakeLog.question_id).where(
                    MistakeLog.source_type == EXAM_MISTAKE_SOURCE,
                    MistakeLog.source_id.in_(source_ids),
                )
            )
            existing = {(row[0], row[1]) for row in result.all()}

            added = 0
            for entry in entries:
                if (entry.source_id, entry.question_id) in existing:
                    continue
                self.db.add(entry)
                added += 1

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DerivedWriteFailure(f"Failed to log mistakes: {e}") from e

        return added


class ScoreHistoryWriter:
    """Writes the ScoreHistory row summarizing a submission."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, entry: ScoreHistory) -> bool:
        """
        Persist the entry unless its source already has one.

        Raises:
            DerivedWriteFailure: The write was rolled back
        """
        try:
            result = await self.db.execute(
                select(ScoreHistory.id).where(
                    ScoreHistory.source_type == entry.source_type,
                    ScoreHistory.source_id == entry.source_id,
                )
            )
            if result.scalar_one_or_none() is not None:
                logger.info(f"Score history for {entry.source_type}:{entry.source_id} already recorded")
                return False

            self.db.add(entry)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DerivedWriteFailure(f"Failed to log score history: {e}") from e

        return True
