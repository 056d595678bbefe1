"""
Mock Exam Engine - Test Configuration
Pytest fixtures and configuration for testing
"""
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app import models  # noqa: F401
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.mock_exam import ExamStatus, MockExam, MockExamQuestion, QuestionType


def default_questions() -> list[dict[str, Any]]:
    """One MCQ (5 marks, key "B") and one essay (5 marks)."""
    return [
        {
            "question_type": QuestionType.MULTIPLE_CHOICE.value,
            "question": "What is 1/2 + 1/4?",
            "options": {"A": "1/6", "B": "3/4", "C": "2/6", "D": "1"},
            "correct_answer": "B",
            "explanation": "1/2 is 2/4, and 2/4 + 1/4 = 3/4.",
            "marks": 5,
            "topic": "Fractions",
            "difficulty": "easy",
        },
        {
            "question_type": QuestionType.ESSAY.value,
            "question": "Explain why 3/4 is larger than 2/3.",
            "marks": 5,
            "topic": "Fractions",
            "difficulty": "medium",
        },
    ]


@pytest_asyncio.fixture(scope="function")
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Fresh SQLite database per test.

    Every session opened from the maker gets its own connection, so tests
    can play two concurrent requests against the same rows.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Primary session for each test."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_exam(db_session: AsyncSession):
    """
    Factory for published exams.

    Returns (exam, questions); questions keep the order they were given in.
    """

    async def _make(
        questions: list[dict[str, Any]] | None = None,
        **fields: Any,
    ) -> tuple[MockExam, list[MockExamQuestion]]:
        definitions = default_questions() if questions is None else questions
        values = {
            "title": "Fractions Mock Test",
            "subject": "Mathematics",
            "grade_level": 5,
            "duration_minutes": 30,
            "total_marks": sum(definition["marks"] for definition in definitions),
            "passing_marks": 4,
            "status": ExamStatus.PUBLISHED.value,
        }
        values.update(fields)

        exam = MockExam(**values)
        db_session.add(exam)
        await db_session.flush()

        created = []
        for number, definition in enumerate(definitions, start=1):
            question = MockExamQuestion(exam_id=exam.id, question_number=number, **definition)
            db_session.add(question)
            created.append(question)

        await db_session.commit()
        return exam, created

    return _make


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def tomorrow(now) -> datetime:
    return now + timedelta(days=1)


@pytest.fixture
def student_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_student_id() -> uuid.UUID:
    return uuid.uuid4()


def bearer(user_id: uuid.UUID, role: str = "student") -> dict[str, str]:
    token = create_access_token(user_id, additional_claims={"role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(student_id) -> dict[str, str]:
    """Bearer headers for the primary student."""
    return bearer(student_id)


@pytest.fixture
def other_auth_headers(other_student_id) -> dict[str, str]:
    """Bearer headers for a second student."""
    return bearer(other_student_id)


@pytest.fixture
def teacher_headers() -> dict[str, str]:
    """Bearer headers for a reviewer."""
    return bearer(uuid.uuid4(), role="teacher")
