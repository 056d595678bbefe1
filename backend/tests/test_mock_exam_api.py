"""
Mock Exam Engine - Mock Exam API Tests
"""
import uuid
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import create_app

API = "/api/v1/mock-exams"


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test the health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient):
    response = await client.get(API)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_rejects_invalid_token(client: AsyncClient):
    response = await client.get(API, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape(client: AsyncClient):
    response = await client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_list_published_exams_with_session(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam(title="Published")
    await make_exam(title="Hidden draft", status="draft")
    exam_id = str(exam.id)

    response = await client.get(API, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert [item["title"] for item in data] == ["Published"]
    assert data[0]["session"] is None

    await client.post(f"{API}/{exam_id}/start", headers=auth_headers)

    data = (await client.get(API, headers=auth_headers)).json()
    assert data[0]["session"]["state"] == "in_progress"


@pytest.mark.asyncio
async def test_start_and_resume(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam(duration_minutes=20)
    exam_id = str(exam.id)

    first = await client.post(f"{API}/{exam_id}/start", headers=auth_headers)
    assert first.status_code == 200
    first_data = first.json()
    assert first_data["resumed"] is False
    assert first_data["session"]["time_remaining_seconds"] == 1200
    session_id = first_data["session"]["id"]

    await client.put(
        f"{API}/sessions/{session_id}/time",
        json={"time_remaining": 700},
        headers=auth_headers,
    )

    second = await client.post(f"{API}/{exam_id}/start", headers=auth_headers)
    assert second.status_code == 200
    second_data = second.json()
    assert second_data["resumed"] is True
    assert second_data["session"]["id"] == session_id
    assert second_data["session"]["time_remaining_seconds"] == 700


@pytest.mark.asyncio
async def test_start_unknown_exam(client: AsyncClient, auth_headers):
    response = await client.post(f"{API}/{uuid.uuid4()}/start", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Exam not found"}


@pytest.mark.asyncio
async def test_start_outside_window(client: AsyncClient, make_exam, auth_headers, now):
    upcoming, _ = await make_exam(start_date=now + timedelta(days=1))
    expired, _ = await make_exam(end_date=now - timedelta(days=1))
    upcoming_id, expired_id = str(upcoming.id), str(expired.id)

    response = await client.post(f"{API}/{upcoming_id}/start", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Exam has not started yet"}

    response = await client.post(f"{API}/{expired_id}/start", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Exam has expired"}


@pytest.mark.asyncio
async def test_attempt_hides_answer_keys(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam()
    exam_id = str(exam.id)

    response = await client.get(f"{API}/{exam_id}/attempt", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["exam"]["id"] == exam_id
    assert data["existing_session"] is None
    assert [q["question_number"] for q in data["questions"]] == [1, 2]
    for question in data["questions"]:
        assert "correct_answer" not in question
        assert "answer_key" not in question
        assert "explanation" not in question


@pytest.mark.asyncio
async def test_save_answer_and_resume_session(client: AsyncClient, make_exam, auth_headers):
    exam, (mcq, essay) = await make_exam()
    exam_id, mcq_id, essay_id = str(exam.id), str(mcq.id), str(essay.id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]

    for value in ("A", "C"):
        response = await client.post(
            f"{API}/sessions/{session_id}/answers",
            json={"question_id": mcq_id, "answer": value, "time_spent": 15},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

    response = await client.get(f"{API}/sessions/{session_id}", headers=auth_headers)
    assert response.status_code == 200
    questions = {q["id"]: q for q in response.json()["questions"]}
    assert questions[mcq_id]["user_answer"] == "C"
    assert questions[mcq_id]["is_answered"] is True
    assert questions[essay_id]["is_answered"] is False


@pytest.mark.asyncio
async def test_save_answer_for_foreign_question(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam()
    _, other_questions = await make_exam(title="Other")
    exam_id, foreign_id = str(exam.id), str(other_questions[0].id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]

    response = await client.post(
        f"{API}/sessions/{session_id}/answers",
        json={"question_id": foreign_id, "answer": "A"},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Question not found"}


@pytest.mark.asyncio
async def test_negative_time_is_rejected(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam()
    session_id = (await client.post(f"{API}/{exam.id}/start", headers=auth_headers)).json()["session"]["id"]

    response = await client.put(
        f"{API}/sessions/{session_id}/time",
        json={"time_remaining": -5},
        headers=auth_headers,
    )
    assert response.status_code == 422
    body = response.json()
    assert set(body) == {"error"}
    assert "time_remaining" in body["error"]


@pytest.mark.asyncio
async def test_other_users_session_is_not_found(
    client: AsyncClient, make_exam, auth_headers, other_auth_headers
):
    exam, (mcq, _) = await make_exam()
    exam_id, mcq_id = str(exam.id), str(mcq.id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]

    response = await client.get(f"{API}/sessions/{session_id}", headers=other_auth_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}

    response = await client.post(
        f"{API}/sessions/{session_id}/answers",
        json={"question_id": mcq_id, "answer": "B"},
        headers=other_auth_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_submit_and_results(client: AsyncClient, make_exam, auth_headers):
    exam, (mcq, essay) = await make_exam()
    exam_id, mcq_id, essay_id = str(exam.id), str(mcq.id), str(essay.id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]

    await client.post(
        f"{API}/sessions/{session_id}/answers",
        json={"question_id": mcq_id, "answer": "B", "time_spent": 20},
        headers=auth_headers,
    )

    response = await client.get(f"{API}/sessions/{session_id}/results", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Exam has not been submitted yet"}

    response = await client.post(
        f"{API}/sessions/{session_id}/submit",
        json={"answers": [{"question_id": essay_id, "answer": "Essay text", "time_spent": 90}]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["result"]["objective_score"] == 5
    assert data["result"]["subjective_score"] == 0
    assert data["result"]["subjective_graded"] is False
    assert data["result"]["percentage"] == 50.0
    assert data["session"]["state"] == "submitted"

    response = await client.get(f"{API}/sessions/{session_id}/results", headers=auth_headers)
    assert response.status_code == 200
    results = response.json()
    assert results["session"]["percentage"] == 50.0
    assert results["exam"]["id"] == exam_id
    questions = {q["id"]: q for q in results["questions"]}
    assert questions[mcq_id]["correct_answer"] == "B"
    assert questions[mcq_id]["is_correct"] is True
    assert questions[mcq_id]["marks_obtained"] == 5
    assert questions[essay_id]["user_answer"] == "Essay text"
    assert questions[essay_id]["is_correct"] is None


@pytest.mark.asyncio
async def test_submitted_session_is_frozen(client: AsyncClient, make_exam, auth_headers):
    exam, (mcq, _) = await make_exam()
    exam_id, mcq_id = str(exam.id), str(mcq.id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]

    first = await client.post(f"{API}/sessions/{session_id}/submit", json={}, headers=auth_headers)
    assert first.status_code == 200

    second = await client.post(f"{API}/sessions/{session_id}/submit", json={}, headers=auth_headers)
    assert second.status_code == 400
    assert "already submitted" in second.json()["error"].lower()

    response = await client.post(
        f"{API}/sessions/{session_id}/answers",
        json={"question_id": mcq_id, "answer": "B"},
        headers=auth_headers,
    )
    assert response.status_code == 400

    response = await client.put(
        f"{API}/sessions/{session_id}/time",
        json={"time_remaining": 10},
        headers=auth_headers,
    )
    assert response.status_code == 400

    response = await client.post(f"{API}/{exam_id}/start", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "You have already submitted this exam"}


@pytest.mark.asyncio
async def test_reviewer_records_essay_grade(
    client: AsyncClient, make_exam, auth_headers, teacher_headers
):
    exam, (mcq, essay) = await make_exam()
    exam_id, mcq_id, essay_id = str(exam.id), str(mcq.id), str(essay.id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]
    await client.post(
        f"{API}/sessions/{session_id}/submit",
        json={"answers": [
            {"question_id": mcq_id, "answer": "B"},
            {"question_id": essay_id, "answer": "Essay text"},
        ]},
        headers=auth_headers,
    )

    payload = {"question_id": essay_id, "marks_obtained": 4, "feedback": "Clear argument"}

    response = await client.post(f"{API}/sessions/{session_id}/grades", json=payload, headers=auth_headers)
    assert response.status_code == 403
    assert "error" in response.json()

    response = await client.post(f"{API}/sessions/{session_id}/grades", json=payload, headers=teacher_headers)
    assert response.status_code == 200
    session = response.json()["session"]
    assert session["subjective_graded"] is True
    assert session["total_marks_obtained"] == 9
    assert session["grade"] == "A"

    results = (await client.get(f"{API}/sessions/{session_id}/results", headers=auth_headers)).json()
    essay_result = next(q for q in results["questions"] if q["id"] == essay_id)
    assert essay_result["marks_obtained"] == 4
    assert essay_result["grader_feedback"] == "Clear argument"


@pytest.mark.asyncio
async def test_reviewer_cannot_grade_objective_question(
    client: AsyncClient, make_exam, auth_headers, teacher_headers
):
    exam, (mcq, _) = await make_exam()
    exam_id, mcq_id = str(exam.id), str(mcq.id)
    session_id = (await client.post(f"{API}/{exam_id}/start", headers=auth_headers)).json()["session"]["id"]
    await client.post(f"{API}/sessions/{session_id}/submit", json={}, headers=auth_headers)

    response = await client.post(
        f"{API}/sessions/{session_id}/grades",
        json={"question_id": mcq_id, "marks_obtained": 5},
        headers=teacher_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Only subjective questions take reviewer marks"}


@pytest.mark.asyncio
async def test_unexpected_error_is_rendered_without_internals():
    broken_app = create_app()

    @broken_app.get("/boom")
    async def boom():
        raise RuntimeError("connection string leaked")

    transport = ASGITransport(app=broken_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_malformed_body_uses_error_shape(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam()
    session_id = (await client.post(f"{API}/{exam.id}/start", headers=auth_headers)).json()["session"]["id"]

    response = await client.post(
        f"{API}/sessions/{session_id}/answers",
        json={"answer": "A"},
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert "question_id" in response.json()["error"]


@pytest.mark.asyncio
async def test_options_are_listed_in_key_order(client: AsyncClient, make_exam, auth_headers):
    exam, _ = await make_exam([
        {
            "question_type": "multiple_choice",
            "question": "Which fraction is largest?",
            "options": {"C": "2/3", "A": "1/2", "D": "3/5", "B": "3/4"},
            "correct_answer": "B",
            "marks": 1,
        },
    ])

    response = await client.get(f"{API}/{exam.id}/attempt", headers=auth_headers)
    assert response.status_code == 200
    options = response.json()["questions"][0]["options"]
    assert list(options) == ["A", "B", "C", "D"]
    assert options["B"] == "3/4"
