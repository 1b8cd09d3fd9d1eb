"""API tests for assignment authoring, submission and grading."""

from datetime import timedelta

import httpx
import pytest

from edutrack.services.periods import utcnow


def assignment_payload(class_id: int, **overrides) -> dict:
    payload = {
        "title": "Unit 1 quiz",
        "class_id": class_id,
        "due_date": (utcnow() + timedelta(days=7)).isoformat(),
        "questions": [
            {"text": "2 + 2 = ?", "correct_answer": "4", "points": 2},
            {"text": "Spell cat", "correct_answer": "Cat"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
async def assignment(client: httpx.AsyncClient, classroom, teacher, auth_headers) -> dict:
    response = await client.post(
        "/api/assignments", json=assignment_payload(classroom.id), headers=auth_headers(teacher)
    )
    assert response.status_code == 201
    return response.json()["assignment"]


def answers_for(assignment: dict, *texts: str) -> list[dict]:
    return [
        {"question_id": q["id"], "answer": text}
        for q, text in zip(assignment["questions"], texts)
    ]


async def test_create_assigns_order_points_and_total(assignment):
    assert assignment["total_points"] == 3
    assert [q["order"] for q in assignment["questions"]] == [1, 2]
    assert assignment["questions"][1]["points"] == 1
    assert assignment["questions"][1]["type"] == "short_answer"
    assert all(q["id"] for q in assignment["questions"])


async def test_create_requires_a_question(client: httpx.AsyncClient, classroom, teacher, auth_headers):
    response = await client.post(
        "/api/assignments",
        json=assignment_payload(classroom.id, questions=[]),
        headers=auth_headers(teacher),
    )
    assert response.status_code == 422


async def test_student_view_hides_answers(client: httpx.AsyncClient, assignment, student, auth_headers):
    response = await client.get(f"/api/assignments/{assignment['id']}", headers=auth_headers(student))
    data = response.json()["assignment"]
    assert response.status_code == 200
    assert all("correct_answer" not in q for q in data["questions"])
    assert data["submission_status"] == "pending"
    assert "submissions" not in data


async def test_submit_is_auto_graded(client: httpx.AsyncClient, assignment, student, auth_headers):
    response = await client.post(
        f"/api/assignments/{assignment['id']}/submit",
        json={"answers": answers_for(assignment, " 4", "cat")},
        headers=auth_headers(student),
    )
    assert response.status_code == 200
    submission = response.json()["submission"]
    assert submission["score"] == 3
    assert submission["percentage"] == 100
    assert response.json()["assignment"]["submission_status"] == "submitted"


async def test_resubmit_replaces(client: httpx.AsyncClient, assignment, student, teacher, auth_headers):
    url = f"/api/assignments/{assignment['id']}/submit"
    await client.post(url, json={"answers": answers_for(assignment, "5")}, headers=auth_headers(student))
    await client.post(url, json={"answers": answers_for(assignment, "4")}, headers=auth_headers(student))

    response = await client.get(
        f"/api/assignments/{assignment['id']}/submissions", headers=auth_headers(teacher)
    )
    [submission] = response.json()["submissions"]
    assert submission["score"] == 2
    assert submission["percentage"] == 67
    assert submission["student"]["email"] == student.email


async def test_late_submission_rejected(
    client: httpx.AsyncClient, classroom, teacher, student, auth_headers
):
    payload = assignment_payload(classroom.id, due_date=(utcnow() - timedelta(days=1)).isoformat())
    created = (
        await client.post("/api/assignments", json=payload, headers=auth_headers(teacher))
    ).json()["assignment"]

    response = await client.post(
        f"/api/assignments/{created['id']}/submit",
        json={"answers": answers_for(created, "4")},
        headers=auth_headers(student),
    )
    assert response.status_code == 400
    assert "deadline" in response.json()["detail"]


async def test_late_submission_allowed_by_policy(
    client: httpx.AsyncClient, classroom, teacher, student, auth_headers
):
    payload = assignment_payload(
        classroom.id,
        due_date=(utcnow() - timedelta(days=1)).isoformat(),
        allow_late_submission=True,
    )
    created = (
        await client.post("/api/assignments", json=payload, headers=auth_headers(teacher))
    ).json()["assignment"]

    response = await client.post(
        f"/api/assignments/{created['id']}/submit",
        json={"answers": answers_for(created, "4")},
        headers=auth_headers(student),
    )
    assert response.status_code == 200


async def test_non_member_cannot_submit(client: httpx.AsyncClient, assignment, make_user, auth_headers):
    outsider = await make_user("Outsider", "out@example.com")
    response = await client.post(
        f"/api/assignments/{assignment['id']}/submit",
        json={"answers": answers_for(assignment, "4")},
        headers=auth_headers(outsider),
    )
    assert response.status_code == 403


async def test_manual_grade(client: httpx.AsyncClient, assignment, student, teacher, auth_headers):
    await client.post(
        f"/api/assignments/{assignment['id']}/submit",
        json={"answers": answers_for(assignment, "4")},
        headers=auth_headers(student),
    )
    response = await client.put(
        f"/api/assignments/{assignment['id']}/grade/{student.id}",
        json={"score": 3, "feedback": "Full marks after review"},
        headers=auth_headers(teacher),
    )
    assert response.status_code == 200
    graded = response.json()["submission"]
    assert graded["percentage"] == 100
    assert graded["graded_by"] == teacher.id


async def test_grade_missing_submission_is_404(
    client: httpx.AsyncClient, assignment, student, teacher, auth_headers
):
    response = await client.put(
        f"/api/assignments/{assignment['id']}/grade/{student.id}",
        json={"score": 1},
        headers=auth_headers(teacher),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Submission not found"


async def test_update_questions_recomputes_total(
    client: httpx.AsyncClient, assignment, teacher, auth_headers
):
    response = await client.put(
        f"/api/assignments/{assignment['id']}",
        json={"questions": [{"text": "Only one", "correct_answer": "yes", "points": 5}]},
        headers=auth_headers(teacher),
    )
    assert response.json()["assignment"]["total_points"] == 5


async def test_list_filters_by_status(
    client: httpx.AsyncClient, classroom, assignment, teacher, student, auth_headers
):
    second = (
        await client.post(
            "/api/assignments", json=assignment_payload(classroom.id, title="Second"),
            headers=auth_headers(teacher),
        )
    ).json()["assignment"]
    await client.post(
        f"/api/assignments/{second['id']}/submit",
        json={"answers": answers_for(second, "4")},
        headers=auth_headers(student),
    )

    url = f"/api/assignments/class/{classroom.id}"
    submitted = (await client.get(f"{url}?status=submitted", headers=auth_headers(student))).json()
    pending = (await client.get(f"{url}?status=pending", headers=auth_headers(student))).json()
    assert [a["id"] for a in submitted["assignments"]] == [second["id"]]
    assert [a["id"] for a in pending["assignments"]] == [assignment["id"]]
    assert pending["pagination"]["total"] == 1


async def test_delete_assignment(client: httpx.AsyncClient, assignment, teacher, auth_headers):
    response = await client.delete(f"/api/assignments/{assignment['id']}", headers=auth_headers(teacher))
    assert response.status_code == 200
    response = await client.get(f"/api/assignments/{assignment['id']}", headers=auth_headers(teacher))
    assert response.status_code == 404
