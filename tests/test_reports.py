"""API tests for progress reports, class analytics and the parent dashboard."""

from datetime import timedelta

import httpx

from edutrack.models.assignment import Assignment
from edutrack.models.media import Media
from edutrack.models.practice import PracticeSession
from edutrack.services.periods import utcnow


async def seed_activity(db_session, classroom, teacher, student):
    """One practice at 80%, one submission at 50%, one view at 100%."""
    now = utcnow()
    db_session.add_all([
        PracticeSession(
            student_id=student.id, type="writing", category="word", content="x",
            accuracy=80, class_id=classroom.id, date=now - timedelta(days=1),
        ),
        Assignment(
            title="Quiz", class_id=classroom.id, created_by=teacher.id, total_points=10,
            due_date=now + timedelta(days=1), questions=[],
            submissions=[{
                "student_id": student.id, "answers": [], "score": 5, "percentage": 50,
                "feedback": None, "submitted_at": (now - timedelta(hours=2)).isoformat(),
                "graded_at": None, "graded_by": None,
            }],
        ),
        Media(
            title="Video", file_path="videos/v.mp4", original_name="v.mp4", mime_type="video/mp4",
            file_size=1, type="video", class_id=classroom.id, uploaded_by=teacher.id,
            views=[{"student_id": student.id, "percentage": 100, "date": now.isoformat()}],
        ),
    ])
    await db_session.commit()


async def test_student_report_overall_score(
    client: httpx.AsyncClient, db_session, classroom, teacher, student, auth_headers
):
    await seed_activity(db_session, classroom, teacher, student)

    response = await client.get(f"/api/reports/student/{student.id}", headers=auth_headers(student))
    body = response.json()
    assert response.status_code == 200
    # (0.8 * 40 + 0.5 * 40 + 1.0 * 20) / 100
    assert body["overall_score"] == 72
    assert body["assignment_performance"][0]["class_name"] == classroom.name
    assert body["media_consumption"][0]["total_videos"] == 1
    assert len(body["recent_activities"]["practices"]) == 1
    assert body["recent_activities"]["assignments"][0]["submission"]["score"] == 5


async def test_student_report_without_activity(
    client: httpx.AsyncClient, student, auth_headers
):
    response = await client.get(f"/api/reports/student/{student.id}", headers=auth_headers(student))
    assert response.json()["overall_score"] == 0


async def test_student_cannot_read_other_reports(
    client: httpx.AsyncClient, student, make_user, auth_headers
):
    other = await make_user("Other", "other@example.com")
    response = await client.get(f"/api/reports/student/{other.id}", headers=auth_headers(student))
    assert response.status_code == 403


async def test_parent_access_follows_parent_email(
    client: httpx.AsyncClient, student, parent, make_user, auth_headers
):
    response = await client.get(f"/api/reports/student/{student.id}", headers=auth_headers(parent))
    assert response.status_code == 200

    stranger = await make_user("Stranger", "stranger@example.com", role="parent")
    response = await client.get(f"/api/reports/student/{student.id}", headers=auth_headers(stranger))
    assert response.status_code == 403


async def test_teacher_access_requires_shared_class(
    client: httpx.AsyncClient, classroom, teacher, student, make_user, auth_headers
):
    response = await client.get(f"/api/reports/student/{student.id}", headers=auth_headers(teacher))
    assert response.status_code == 200

    other = await make_user("Other", "other@example.com", role="teacher")
    response = await client.get(f"/api/reports/student/{student.id}", headers=auth_headers(other))
    assert response.status_code == 403


async def test_class_analytics(
    client: httpx.AsyncClient, db_session, classroom, teacher, student, auth_headers
):
    await seed_activity(db_session, classroom, teacher, student)

    response = await client.get(f"/api/reports/class/{classroom.id}", headers=auth_headers(teacher))
    body = response.json()
    assert response.status_code == 200
    assert body["assignment_stats"]["total_submissions"] == 1
    assert body["assignment_stats"]["average_percentage"] == 50
    assert body["media_stats"] == [
        {"type": "video", "count": 1, "total_views": 1, "average_watch_percentage": 100}
    ]
    [engagement] = body["student_engagement"]
    assert engagement["student_id"] == student.id
    # one practice is below the activity threshold
    assert [s["student_id"] for s in body["struggling_students"]] == [student.id]
    assert [s["student_id"] for s in body["top_performers"]] == [student.id]


async def test_class_analytics_without_assignments(
    client: httpx.AsyncClient, classroom, teacher, auth_headers
):
    response = await client.get(f"/api/reports/class/{classroom.id}", headers=auth_headers(teacher))
    assert response.json()["assignment_stats"] == {
        "total_assignments": 0,
        "total_submissions": 0,
        "average_score": 0,
        "average_percentage": 0,
    }


async def test_parent_dashboard(
    client: httpx.AsyncClient, db_session, classroom, teacher, student, parent, auth_headers
):
    await seed_activity(db_session, classroom, teacher, student)

    response = await client.get("/api/reports/parent/dashboard", headers=auth_headers(parent))
    [child] = response.json()["children"]
    assert child["child"]["id"] == student.id
    assert child["classes"][0]["teacher"]["id"] == teacher.id
    assert len(child["recent_assignments"]) == 1


async def test_parent_dashboard_without_children(
    client: httpx.AsyncClient, make_user, auth_headers
):
    lonely = await make_user("Lonely", "lonely@example.com", role="parent")
    response = await client.get("/api/reports/parent/dashboard", headers=auth_headers(lonely))
    assert response.json()["children"] == []


async def test_dashboard_is_parent_only(client: httpx.AsyncClient, student, auth_headers):
    response = await client.get("/api/reports/parent/dashboard", headers=auth_headers(student))
    assert response.status_code == 403
