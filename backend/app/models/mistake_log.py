"""
Mock Exam Engine - Mistake Log Model
Denormalized snapshots of incorrect objective answers, consumed by the review workflow
"""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, JSONType


class MistakeLog(Base):
    """
    One incorrect objective answer, written once at submission time.

    The row is independent of the session afterwards; the review workflow
    may flip is_resolved / reviewed_at.
    """

    __tablename__ = "mistake_logs"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint(
            "source_type", "source_id", "question_id",
            name="uq_mistake_logs_source_question"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)

    # Where the mistake came from ("exam" for mock exam sessions)
    source_type: Mapped[str] = mapped_column(String(30))
    source_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    question_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Snapshot
    question_text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    user_answer: Mapped[str] = mapped_column(Text, default="")
    correct_answer: Mapped[str] = mapped_column(Text, default="")
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)
    topic: Mapped[str | None] = mapped_column(String(200), nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, default=list)
    difficulty: Mapped[str | None] = mapped_column(String(20), nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)

    # Review workflow
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
