"""Progress report API routes - student reports, class analytics, parent dashboard."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.dependencies import get_current_user, get_taught_class, require_parent
from edutrack.models.classroom import Classroom
from edutrack.models.user import User
from edutrack.serializers import classroom_out, practice_out, user_out, user_summary
from edutrack.services import analytics
from edutrack.services.analytics import load_classes, load_users
from edutrack.services.periods import DateRange, analytics_window, report_window, rolling, utcnow
from edutrack.services.scoring import overall_progress_score

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])

RECENT_LIMIT = 5
DASHBOARD_DAYS = 30


def _class_ref(classroom: Classroom | None) -> dict | None:
    if classroom is None:
        return None
    return {"id": classroom.id, "name": classroom.name, "subject": classroom.subject}


async def _check_report_access(db: AsyncSession, user: User, student: User | None, student_id: int) -> None:
    if user.role == "parent":
        if student is None or not student.parent_email or student.parent_email != user.email:
            raise HTTPException(
                status_code=403,
                detail="Access denied. You can only view your own child's progress.",
            )
    elif user.role == "student":
        if student_id != user.id:
            raise HTTPException(
                status_code=403,
                detail="Access denied. You can only view your own progress.",
            )
    elif user.role == "teacher":
        result = await db.execute(select(Classroom).where(Classroom.teacher_id == user.id))
        if not any(c.has_student(student_id) for c in result.scalars().all()):
            raise HTTPException(
                status_code=403,
                detail="Access denied. Student is not in any of your classes.",
            )
    else:
        raise HTTPException(status_code=403, detail="Access denied")


async def _recent_assignments(db: AsyncSession, student: User, window: DateRange) -> list[dict]:
    rows = await analytics.recent_submissions(
        db, student.id, student.class_ids or [], window, limit=RECENT_LIMIT
    )
    classes = await load_classes(db, (a.class_id for a, _ in rows))
    return [
        {
            "id": assignment.id,
            "title": assignment.title,
            "class": _class_ref(classes.get(assignment.class_id)),
            "due_date": assignment.due_date,
            "total_points": assignment.total_points,
            "submission": sub,
        }
        for assignment, sub in rows
    ]


@router.get("/student/{student_id}")
async def student_progress_report(
    student_id: int,
    period: str = Query("month", pattern="^(week|month|quarter|year)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Practice, assignment and media rollups with an overall progress score."""
    student = await db.get(User, student_id)
    await _check_report_access(db, user, student, student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")

    window = report_window(period)
    practice_stats = await analytics.student_practice_stats(db, student_id, window)
    assignment_performance = await analytics.student_assignment_performance(
        db, student_id, window
    )
    media_consumption = await analytics.student_media_consumption(db, student_id, window)

    recent_practices = await analytics.fetch_practices(db, window, student_id=student_id)
    practice_classes = await load_classes(
        db, (p.class_id for p in recent_practices[:RECENT_LIMIT] if p.class_id)
    )
    enrolled = await load_classes(db, student.class_ids or [])

    student_data = user_out(student)
    student_data["classes"] = [_class_ref(c) for c in enrolled.values()]

    return {
        "student": student_data,
        "period": period,
        "date_range": {"start": window.start, "end": window.end},
        "overall_score": overall_progress_score(
            practice_stats, assignment_performance, media_consumption
        ),
        "practice_stats": practice_stats,
        "assignment_performance": assignment_performance,
        "media_consumption": media_consumption,
        "recent_activities": {
            "practices": [
                {**practice_out(p), "class": _class_ref(practice_classes.get(p.class_id))}
                for p in recent_practices[:RECENT_LIMIT]
            ],
            "assignments": await _recent_assignments(db, student, window),
        },
    }


@router.get("/class/{class_id}")
async def class_analytics(
    period: str = Query("month", pattern="^(week|month|quarter)$"),
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    """Media, assignment and engagement rollups for the class teacher."""
    window = analytics_window(period)
    media_stats = await analytics.class_media_stats(db, classroom.id, window)
    assignment_stats = await analytics.class_assignment_summary(db, classroom.id, window)
    engagement = await analytics.class_engagement(db, classroom.id, window)

    members = await load_users(db, [classroom.teacher_id, *(classroom.students or [])])
    class_data = classroom_out(classroom)
    class_data["teacher"] = user_summary(members.get(classroom.teacher_id))
    class_data["students"] = [
        user_summary(members[sid]) for sid in classroom.students or [] if sid in members
    ]

    return {
        "class": class_data,
        "period": period,
        "date_range": {"start": window.start, "end": window.end},
        "media_stats": media_stats,
        "assignment_stats": assignment_stats,
        "student_engagement": engagement,
        "top_performers": analytics.top_performers(engagement),
        "struggling_students": analytics.struggling_students(engagement),
    }


@router.get("/parent/dashboard")
async def parent_dashboard(
    user: User = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
):
    """Last-30-day overview for every active child linked by parent email."""
    result = await db.execute(
        select(User).where(
            User.parent_email == user.email,
            User.role == "student",
            User.is_active == True,  # noqa: E712
        )
    )
    children = list(result.scalars().all())
    if not children:
        return {"children": [], "message": "No children found for this parent account"}

    now = utcnow()
    window = DateRange(rolling(now, DASHBOARD_DAYS), now)

    progress = []
    for child in children:
        practice_stats = await analytics.student_practice_stats(db, child.id, window)
        classes = await load_classes(db, child.class_ids or [])
        teachers = await load_users(db, (c.teacher_id for c in classes.values()))
        progress.append({
            "child": user_out(child),
            "practice_stats": practice_stats,
            "recent_assignments": await _recent_assignments(db, child, window),
            "classes": [
                {**_class_ref(c), "teacher": user_summary(teachers.get(c.teacher_id))}
                for c in classes.values()
                if c.has_student(child.id)
            ],
        })

    logger.debug("Parent dashboard for %s: %d children", user.id, len(children))
    return {"children": progress}
