"""
Mock Exam Engine - Mock Exam API
Endpoints for timed exam attempts: start/resume, answer capture, submission and results
"""
import uuid

from fastapi import APIRouter

from app.api.deps import CurrentUser, DbSession, Reviewer
from app.schemas.mock_exam import (
    AttemptResponse,
    ExamListItem,
    ExamResponse,
    GradingResultResponse,
    QuestionPublic,
    QuestionResult,
    QuestionWithAnswer,
    RecordGradeRequest,
    RecordGradeResponse,
    ResultsResponse,
    SaveAnswerRequest,
    SessionDetailResponse,
    SessionResponse,
    StartSessionResponse,
    SubmitRequest,
    SubmitResponse,
    SuccessResponse,
    UpdateTimeRequest,
)
from app.services.answer_store import AnswerInput, AnswerStore
from app.services.eligibility import check_eligibility
from app.services.errors import NotSubmittedError
from app.services.exam_catalog import ExamCatalog
from app.services.exam_session import SessionStore
from app.services.submission import SubmissionCoordinator

router = APIRouter(prefix="/mock-exams", tags=["Mock Exams"])


@router.get("", response_model=list[ExamListItem])
async def list_exams(current_user: CurrentUser, db: DbSession):
    """Published exams, each with the caller's session (or null)."""
    exams = await ExamCatalog(db).list_published()
    sessions = await SessionStore(db).sessions_by_exam(
        current_user.user_id, [e.id for e in exams]
    )

    response = []
    for exam in exams:
        session = sessions.get(exam.id)
        item = ExamListItem.model_validate(exam)
        item.session = SessionResponse.model_validate(session) if session else None
        response.append(item)
    return response


@router.post("/{exam_id}/start", response_model=StartSessionResponse)
async def start_exam(exam_id: uuid.UUID, current_user: CurrentUser, db: DbSession):
    """
    Start an attempt, or resume the caller's in-progress one.
    Resuming never resets the countdown.
    """
    session, resumed = await SessionStore(db).start(current_user.user_id, exam_id)
    return StartSessionResponse(
        session=SessionResponse.model_validate(session),
        resumed=resumed,
    )


@router.get("/{exam_id}/attempt", response_model=AttemptResponse)
async def get_attempt(exam_id: uuid.UUID, current_user: CurrentUser, db: DbSession):
    """Exam and questions (without answer keys) for rendering the attempt UI."""
    store = SessionStore(db)
    catalog = ExamCatalog(db)

    exam = await catalog.get_exam(exam_id)
    existing = await store.find(current_user.user_id, exam_id)
    check_eligibility(exam, existing, store.clock())

    questions = await catalog.get_questions(exam_id)
    return AttemptResponse(
        exam=ExamResponse.model_validate(exam),
        questions=[QuestionPublic.model_validate(q) for q in questions],
        existing_session=SessionResponse.model_validate(existing) if existing else None,
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(session_id: uuid.UUID, current_user: CurrentUser, db: DbSession):
    """The caller's session with the answers saved so far."""
    session = await SessionStore(db).get_owned(current_user.user_id, session_id)
    questions = await ExamCatalog(db).get_questions(session.exam_id)
    answers = await AnswerStore(db).list_answers(session.id)

    return SessionDetailResponse(
        session=SessionResponse.model_validate(session),
        questions=[
            QuestionWithAnswer(
                **QuestionPublic.model_validate(q).model_dump(),
                user_answer=answers[q.id].user_answer if q.id in answers else None,
                is_answered=q.id in answers,
            )
            for q in questions
        ],
    )


@router.post("/sessions/{session_id}/answers", response_model=SuccessResponse)
async def save_answer(
    session_id: uuid.UUID,
    request: SaveAnswerRequest,
    current_user: CurrentUser,
    db: DbSession,
):
    """Upsert the caller's answer to one question."""
    await AnswerStore(db).save_answer(
        current_user.user_id,
        session_id,
        request.question_id,
        request.answer,
        request.time_spent,
    )
    return SuccessResponse()


@router.put("/sessions/{session_id}/time", response_model=SuccessResponse)
async def update_time(
    session_id: uuid.UUID,
    request: UpdateTimeRequest,
    current_user: CurrentUser,
    db: DbSession,
):
    """Persist the client's countdown."""
    await SessionStore(db).update_time(current_user.user_id, session_id, request.time_remaining)
    return SuccessResponse()


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit_exam(
    session_id: uuid.UUID,
    request: SubmitRequest,
    current_user: CurrentUser,
    db: DbSession,
):
    """
    Submit the attempt.
    Flushes buffered answers, grades the stored answer set and finalizes the session.
    """
    outcome = await SubmissionCoordinator(db).submit(
        current_user.user_id,
        session_id,
        [AnswerInput(a.question_id, a.answer, a.time_spent) for a in request.answers],
    )
    return SubmitResponse(
        result=GradingResultResponse.model_validate(outcome.result),
        session=SessionResponse.model_validate(outcome.session),
    )


@router.get("/sessions/{session_id}/results", response_model=ResultsResponse)
async def get_results(session_id: uuid.UUID, current_user: CurrentUser, db: DbSession):
    """Graded questions with the caller's answers. Only once submitted."""
    session = await SessionStore(db).get_owned(current_user.user_id, session_id)
    if not session.is_submitted:
        raise NotSubmittedError()

    catalog = ExamCatalog(db)
    exam = await catalog.get_exam(session.exam_id)
    questions = await catalog.get_questions(session.exam_id)
    answers = await AnswerStore(db).list_answers(session.id)

    results = []
    for q in questions:
        answer = answers.get(q.id)
        results.append(QuestionResult(
            **QuestionPublic.model_validate(q).model_dump(),
            correct_answer=q.correct_answer,
            answer_key=q.answer_key,
            explanation=q.explanation,
            user_answer=answer.user_answer if answer else None,
            is_correct=answer.is_correct if answer else None,
            marks_obtained=answer.marks_obtained if answer else 0,
            grader_feedback=answer.grader_feedback if answer else None,
        ))

    return ResultsResponse(
        session=SessionResponse.model_validate(session),
        exam=ExamResponse.model_validate(exam),
        questions=results,
    )


@router.post("/sessions/{session_id}/grades", response_model=RecordGradeResponse)
async def record_grade(
    session_id: uuid.UUID,
    request: RecordGradeRequest,
    reviewer: Reviewer,
    db: DbSession,
):
    """Reviewer endpoint: supply marks for a subjective question of a submitted session."""
    outcome = await SubmissionCoordinator(db).record_subjective_grade(
        session_id,
        request.question_id,
        request.marks_obtained,
        request.feedback,
    )
    return RecordGradeResponse(session=SessionResponse.model_validate(outcome.session))
