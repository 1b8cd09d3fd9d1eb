"""Practice session API routes - saving, history, statistics."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.dependencies import get_taught_class, require_student
from edutrack.models.classroom import Classroom
from edutrack.models.practice import PracticeSession
from edutrack.models.user import User
from edutrack.serializers import pagination, practice_out, user_summary
from edutrack.services import analytics
from edutrack.services.periods import analytics_window, practice_stats_window, utcnow
from edutrack.services.practice import build_practice, mark_completion

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/practice", tags=["practice"])

PRACTICE_TYPE_PATTERN = "^(writing|typing|drawing)$"
CATEGORY_PATTERN = "^(alphabet|number|word|sentence|math|science|general)$"


class PracticeCreateRequest(BaseModel):
    type: str = Field(pattern=PRACTICE_TYPE_PATTERN)
    category: str = Field(pattern=CATEGORY_PATTERN)
    content: str = Field(min_length=1, max_length=2000)
    target_content: str | None = Field(default=None, max_length=2000)
    accuracy: float | None = Field(default=None, ge=0, le=100)
    strokes: int | None = Field(default=None, ge=0)
    time_spent: int | None = Field(default=None, ge=0)
    attempts: int | None = Field(default=None, ge=1)
    difficulty: str | None = Field(default=None, pattern="^(easy|medium|hard)$")
    writing_data: dict[str, Any] | None = None
    typing_data: dict[str, Any] | None = None
    class_id: int | None = None
    assignment_id: int | None = None
    device_info: dict[str, Any] | None = None


class PracticeUpdateRequest(BaseModel):
    accuracy: float | None = Field(default=None, ge=0, le=100)
    strokes: int | None = Field(default=None, ge=0)
    time_spent: int | None = Field(default=None, ge=0)
    attempts: int | None = Field(default=None, ge=1)
    is_completed: bool | None = None
    score: float | None = Field(default=None, ge=0)
    feedback: str | None = Field(default=None, max_length=500)


async def _owned_practice(db: AsyncSession, practice_id: int, user: User) -> PracticeSession:
    practice = await db.get(PracticeSession, practice_id)
    if practice is None:
        raise HTTPException(status_code=404, detail="Practice session not found")
    if practice.student_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return practice


@router.post("", status_code=201)
async def save_practice(
    body: PracticeCreateRequest,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Save a practice session with its evaluated metrics."""
    if body.class_id is not None:
        classroom = await db.get(Classroom, body.class_id)
        if classroom is None or not classroom.has_student(user.id):
            raise HTTPException(status_code=403, detail="Access denied to this class")

    practice = build_practice(user.id, body.model_dump())
    db.add(practice)
    await db.commit()
    await db.refresh(practice)
    logger.debug(
        "Saved %s practice %s for student %s (accuracy=%s)",
        practice.type, practice.id, user.id, practice.accuracy,
    )

    return {"message": "Practice session saved successfully", "practice": practice_out(practice)}


@router.get("/history")
async def practice_history(
    type: str | None = Query(None, pattern=PRACTICE_TYPE_PATTERN),
    category: str | None = Query(None, pattern=CATEGORY_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    query = select(PracticeSession).where(
        PracticeSession.student_id == user.id,
        PracticeSession.is_active == True,  # noqa: E712
    )
    if type:
        query = query.where(PracticeSession.type == type)
    if category:
        query = query.where(PracticeSession.category == category)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await db.execute(
        query.order_by(PracticeSession.date.desc(), PracticeSession.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "practices": [practice_out(p) for p in result.scalars().all()],
        "pagination": pagination(page, limit, total),
    }


@router.get("/stats")
async def practice_stats(
    period: str = Query("week", pattern="^(day|week|month|year)$"),
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Per-type, per-category and per-day rollups of the student's practice."""
    window = practice_stats_window(period)
    practices = await analytics.fetch_practices(db, window, student_id=user.id)

    return {
        "period": period,
        "date_range": {"start": window.start, "end": window.end},
        "stats": analytics.group_practice_stats(practices, by="type"),
        "category_stats": analytics.group_practice_stats(practices, by="category"),
        "daily_activity": analytics.daily_activity(practices),
    }


@router.get("/analytics/{student_id}/{class_id}")
async def student_practice_analytics(
    student_id: int,
    period: str = Query("month", pattern="^(week|month|quarter)$"),
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    """One student's practice in a class, for the class teacher."""
    if not classroom.has_student(student_id):
        raise HTTPException(status_code=400, detail="Student is not enrolled in this class")

    window = analytics_window(period)
    student = await db.get(User, student_id)
    practice_stats = await analytics.student_practice_stats(db, student_id, window)
    class_practices = await analytics.fetch_practices(
        db, window, student_id=student_id, class_id=classroom.id
    )

    return {
        "student": user_summary(student),
        "class_id": classroom.id,
        "period": period,
        "date_range": {"start": window.start, "end": window.end},
        "practice_stats": practice_stats,
        "practice_history": [practice_out(p) for p in class_practices],
        "performance_trends": analytics.weekly_trends(class_practices),
    }


@router.put("/{practice_id}")
async def update_practice(
    practice_id: int,
    body: PracticeUpdateRequest,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    practice = await _owned_practice(db, practice_id, user)

    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is not None:
            setattr(practice, field, value)
    if changes.get("is_completed") is None:
        mark_completion(practice)
    practice.updated_at = utcnow()

    await db.commit()
    await db.refresh(practice)
    return {"message": "Practice session updated successfully", "practice": practice_out(practice)}


@router.delete("/{practice_id}")
async def delete_practice(
    practice_id: int,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the session is hidden from history and statistics."""
    practice = await _owned_practice(db, practice_id, user)
    practice.is_active = False
    practice.updated_at = utcnow()
    await db.commit()
    return {"message": "Practice session deleted successfully"}
