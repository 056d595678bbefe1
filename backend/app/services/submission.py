"""
Mock Exam Engine - Submission Coordinator
The only component that moves a session to its terminal state.

Submission runs in two phases:

1. One transaction: re-check the stored state (holding the session row),
   flush trailing answers, re-read the stored answer set,
   grade it, compare-and-set the session to submitted and stamp each answer
   with its verdict. Any failure rolls everything back and leaves the
   session in progress, so the client can retry.
2. Best effort: mistake log and score history rows. Their failures are
   logged and never undo or block the committed result.
"""
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.mistake_log import MistakeLog
from app.models.mock_exam import MockExam, MockExamAnswer, MockExamQuestion, MockExamSession
from app.models.score_history import ScoreHistory
from app.services.answer_store import AnswerInput, AnswerStore
from app.services.derived_writes import (
    EXAM_MISTAKE_SOURCE,
    MOCK_EXAM_SCORE_SOURCE,
    MistakeRecorder,
    ScoreHistoryWriter,
)
from app.services.errors import (
    AlreadySubmittedError,
    DerivedWriteFailure,
    GradingError,
    InvalidGradeError,
    NotSubmittedError,
    QuestionNotFoundError,
    SessionNotFoundError,
)
from app.services.exam_catalog import ExamCatalog
from app.services.exam_session import SessionStore, utcnow
from app.services.grading import (
    GradableAnswer,
    GradableQuestion,
    GradingResult,
    grade_submission,
    resolve_thresholds,
)

logger = logging.getLogger(__name__)


@dataclass
class SubmissionOutcome:
    """What the caller gets back from a successful submission."""
    session: MockExamSession
    result: GradingResult


def to_gradable(question: MockExamQuestion) -> GradableQuestion:
    return GradableQuestion(
        question_id=question.id,
        question_type=question.question_type,
        marks=question.marks,
        correct_answer=question.correct_answer or question.answer_key,
    )


def to_gradable_answers(answers: dict[uuid.UUID, MockExamAnswer]) -> dict[uuid.UUID, GradableAnswer]:
    return {
        question_id: GradableAnswer(
            value=answer.user_answer,
            external_marks=answer.marks_obtained if answer.externally_graded else None,
        )
        for question_id, answer in answers.items()
    }


class SubmissionCoordinator:
    """Orchestrates finalize answers -> grade -> persist session -> derived writes."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.catalog = ExamCatalog(db)
        self.sessions = SessionStore(db, clock=clock)
        self.answers = AnswerStore(db, self.sessions)
        self.mistakes = MistakeRecorder(db)
        self.scores = ScoreHistoryWriter(db)

    async def submit(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        trailing_answers: Iterable[AnswerInput] = (),
    ) -> SubmissionOutcome:
        """
        Submit a session.

        Raises:
            SessionNotFoundError: Unknown session or not the caller's
            AlreadySubmittedError: Session already submitted (including a
                concurrent submission that won the race)
            QuestionNotFoundError: A trailing answer names a foreign question
            GradingError: The grading engine rejected the exam data
        """
        session = await self.sessions.get_owned(user_id, session_id)
        if session.is_submitted:
            raise AlreadySubmittedError("Exam already submitted")

        try:
            await self.sessions.guard_in_progress(session.id)
            exam = await self.catalog.get_exam(session.exam_id)
            questions = await self.catalog.get_questions(session.exam_id)

            await self.answers.save_many(session, trailing_answers)
            # Grade what the store holds, not what the client claims
            stored = await self.answers.list_answers(session.id)
            result = self._grade(exam, questions, stored)

            submitted_at = self.clock()
            if not await self.sessions.mark_submitted(session.id, result, submitted_at):
                raise AlreadySubmittedError("Exam already submitted")

            for graded in result.per_question:
                answer = stored.get(graded.question_id)
                if answer is not None:
                    answer.is_correct = graded.is_correct
                    answer.marks_obtained = graded.marks_obtained

            await self.db.commit()
        except AlreadySubmittedError:
            await self.db.rollback()
            logger.warning(f"Concurrent submission lost for session {session_id}")
            raise
        except GradingError:
            await self.db.rollback()
            logger.exception(f"Grading failed for session {session_id}")
            raise
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(session)
        logger.info(
            f"Session {session.id} submitted: {result.total_marks_obtained} marks "
            f"({result.percentage}%, grade {result.grade})"
        )

        mistakes = self._build_mistakes(user_id, session, exam, questions, stored, result)
        score = self._build_score(user_id, session, exam, questions, stored, result)
        await self._write_derived(session, mistakes, score)

        return SubmissionOutcome(session=session, result=result)

    async def record_subjective_grade(
        self,
        session_id: uuid.UUID,
        question_id: uuid.UUID,
        marks: float,
        feedback: str | None = None,
    ) -> SubmissionOutcome:
        """
        Apply a reviewer's marks to a subjective question of a submitted
        session and re-derive the session's scores.

        The student's answer text is never modified.

        Raises:
            SessionNotFoundError, QuestionNotFoundError
            NotSubmittedError: Session still in progress
            InvalidGradeError: Objective question or marks out of range
        """
        session = await self.db.get(MockExamSession, session_id)
        if session is None:
            raise SessionNotFoundError()
        if not session.is_submitted:
            raise NotSubmittedError()

        question = await self.catalog.get_question(session.exam_id, question_id)
        if question is None:
            raise QuestionNotFoundError()
        if to_gradable(question).is_objective:
            raise InvalidGradeError("Only subjective questions take reviewer marks")
        if not 0 <= marks <= question.marks:
            raise InvalidGradeError(f"Marks must be between 0 and {question.marks}")

        stored = await self.answers.list_answers(session.id)
        answer = stored.get(question_id)
        if answer is None:
            # Unanswered question: a grade-only row, user_answer stays empty
            answer = MockExamAnswer(
                session_id=session.id,
                question_id=question_id,
                user_answer=None,
                time_spent_seconds=0,
                updated_at=self.clock(),
            )
            self.db.add(answer)
            stored[question_id] = answer

        answer.marks_obtained = marks
        answer.grader_feedback = feedback
        answer.externally_graded = True

        exam = await self.catalog.get_exam(session.exam_id)
        questions = await self.catalog.get_questions(session.exam_id)
        try:
            result = self._grade(exam, questions, stored)
            await self.sessions.apply_scores(session, result)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(session)
        logger.info(f"Recorded {marks} marks on question {question_id} for session {session_id}")
        return SubmissionOutcome(session=session, result=result)

    def _grade(
        self,
        exam: MockExam,
        questions: list[MockExamQuestion],
        stored: dict[uuid.UUID, MockExamAnswer],
    ) -> GradingResult:
        return grade_submission(
            questions=[to_gradable(q) for q in questions],
            answers=to_gradable_answers(stored),
            total_marks=exam.total_marks,
            passing_marks=exam.passing_marks or 0,
            thresholds=resolve_thresholds(exam.grade_thresholds, settings.GRADE_THRESHOLDS),
        )

    @staticmethod
    def _build_mistakes(
        user_id: uuid.UUID,
        session: MockExamSession,
        exam: MockExam,
        questions: list[MockExamQuestion],
        stored: dict[uuid.UUID, MockExamAnswer],
        result: GradingResult,
    ) -> list[MistakeLog]:
        by_id = {q.id: q for q in questions}
        entries = []
        for graded in result.incorrect_objective():
            question = by_id[graded.question_id]
            answer = stored.get(question.id)
            entries.append(MistakeLog(
                user_id=user_id,
                source_type=EXAM_MISTAKE_SOURCE,
                source_id=session.id,
                question_id=question.id,
                question_text=question.question,
                question_type=question.question_type,
                user_answer=(answer.user_answer if answer else None) or "",
                correct_answer=question.correct_answer or question.answer_key or "",
                explanation=question.explanation,
                subject=exam.subject,
                topic=question.topic,
                tags=[],
                difficulty=question.difficulty,
                time_spent_seconds=answer.time_spent_seconds if answer else 0,
                is_resolved=False,
            ))
        return entries

    @staticmethod
    def _build_score(
        user_id: uuid.UUID,
        session: MockExamSession,
        exam: MockExam,
        questions: list[MockExamQuestion],
        stored: dict[uuid.UUID, MockExamAnswer],
        result: GradingResult,
    ) -> ScoreHistory:
        return ScoreHistory(
            user_id=user_id,
            source_type=MOCK_EXAM_SCORE_SOURCE,
            source_id=session.id,
            subject=exam.subject,
            score=result.percentage,
            total_questions=len(questions),
            answered_questions=result.answered_count,
            correct_answers=result.correct_count,
            time_spent_seconds=sum(a.time_spent_seconds or 0 for a in stored.values()),
        )

    async def _write_derived(
        self,
        session: MockExamSession,
        mistakes: list[MistakeLog],
        score: ScoreHistory,
    ) -> None:
        """Each write commits on its own; a failure is logged and isolated."""
        try:
            await self.mistakes.record(mistakes)
        except DerivedWriteFailure as e:
            logger.error(f"Session {session.id}: {e.message}")

        try:
            await self.scores.record(score)
        except DerivedWriteFailure as e:
            logger.error(f"Session {session.id}: {e.message}")

        # A rolled-back derived write expires loaded instances
        await self.db.refresh(session)
