"""
Mock Exam Engine - Score History Model
Append-only outcome rows used for longitudinal analytics
"""
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ScoreHistory(Base):
    """One row per submitted session."""

    __tablename__ = "score_history"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_score_history_source"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    source_type: Mapped[str] = mapped_column(String(30))
    source_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)

    score: Mapped[float] = mapped_column(Float)  # 0.0 to 100.0
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    answered_questions: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    def __repr__(self):
        return f"<ScoreHistory {self.source_type}:{self.source_id} score={self.score}%>"
