"""Class management API routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.dependencies import (
    get_class_or_404,
    get_current_user,
    get_taught_class,
    require_student,
    require_teacher,
)
from edutrack.models.assignment import Assignment
from edutrack.models.classroom import Classroom
from edutrack.models.media import Media
from edutrack.models.user import User
from edutrack.serializers import classroom_out, user_summary
from edutrack.services.analytics import load_users
from edutrack.services.classrooms import create_classroom, enroll, unenroll
from edutrack.services.periods import utcnow
from edutrack.services.storage import UploadStorage, get_upload_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/classes", tags=["classes"])


class ClassCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    subject: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    max_students: int | None = Field(default=None, ge=1, le=100)


class ClassUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    subject: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    max_students: int | None = Field(default=None, ge=1, le=100)
    is_active: bool | None = None


class JoinRequest(BaseModel):
    class_code: str = Field(min_length=6, max_length=6)


class AddStudentRequest(BaseModel):
    student_email: str = Field(min_length=3, max_length=254)


async def _class_with_members(db: AsyncSession, classroom: Classroom) -> dict:
    users = await load_users(db, [classroom.teacher_id, *(classroom.students or [])])
    data = classroom_out(classroom)
    data["teacher"] = user_summary(users.get(classroom.teacher_id))
    data["students"] = [
        user_summary(users[sid]) for sid in classroom.students or [] if sid in users
    ]
    return data


@router.post("", status_code=201)
async def create_class(
    body: ClassCreateRequest,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    classroom = await create_classroom(
        db,
        user,
        name=body.name,
        subject=body.subject,
        description=body.description,
        max_students=body.max_students,
    )
    return {"message": "Class created successfully", "class": classroom_out(classroom)}


@router.get("/teacher")
async def teacher_classes(
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    """Classes taught by the current teacher."""
    result = await db.execute(
        select(Classroom)
        .where(Classroom.teacher_id == user.id)
        .order_by(Classroom.created_at.desc(), Classroom.id.desc())
    )
    return {"classes": [classroom_out(c) for c in result.scalars().all()]}


@router.get("/student")
async def student_classes(
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Classes the current student is enrolled in."""
    if not user.class_ids:
        return {"classes": []}
    result = await db.execute(
        select(Classroom)
        .where(Classroom.id.in_(user.class_ids))
        .order_by(Classroom.created_at.desc(), Classroom.id.desc())
    )
    classes = [c for c in result.scalars().all() if c.has_student(user.id)]
    return {"classes": [classroom_out(c, include_code=False) for c in classes]}


@router.post("/join")
async def join_class(
    body: JoinRequest,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Classroom).where(Classroom.class_code == body.class_code.upper())
    )
    classroom = result.scalar_one_or_none()
    if classroom is None:
        raise HTTPException(status_code=404, detail="Invalid class code")

    enroll(classroom, user)
    await db.commit()
    await db.refresh(classroom)

    return {
        "message": "Successfully joined class",
        "class": await _class_with_members(db, classroom),
    }


@router.get("/{class_id}")
async def get_class(
    class_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    classroom = await get_class_or_404(db, class_id)
    data = await _class_with_members(db, classroom)
    if classroom.teacher_id != user.id:
        data.pop("class_code", None)
    return {"class": data}


@router.put("/{class_id}")
async def update_class(
    body: ClassUpdateRequest,
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(classroom, field, value)
    classroom.updated_at = utcnow()
    await db.commit()
    await db.refresh(classroom)
    return {"message": "Class updated successfully", "class": classroom_out(classroom)}


@router.delete("/{class_id}")
async def delete_class(
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
    storage: UploadStorage = Depends(get_upload_storage),
):
    """Delete a class with its media files, media and assignments."""
    class_id = classroom.id

    students = await load_users(db, classroom.students or [])
    for student in students.values():
        unenroll(classroom, student, student.id)

    media_result = await db.execute(select(Media.file_path).where(Media.class_id == class_id))
    file_paths = list(media_result.scalars().all())

    await db.execute(delete(Media).where(Media.class_id == class_id))
    await db.execute(delete(Assignment).where(Assignment.class_id == class_id))
    await db.delete(classroom)
    await db.commit()
    for file_path in file_paths:
        storage.delete(file_path)
    logger.info("Deleted class %s", class_id)

    return {"message": "Class deleted successfully"}


@router.post("/{class_id}/students")
async def add_student(
    body: AddStudentRequest,
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User).where(
            User.email == body.student_email.strip().lower(), User.role == "student"
        )
    )
    student = result.scalar_one_or_none()
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found with this email")

    enroll(classroom, student)
    await db.commit()
    await db.refresh(classroom)

    return {
        "message": "Student added to class successfully",
        "class": await _class_with_members(db, classroom),
    }


@router.delete("/{class_id}/students/{student_id}")
async def remove_student(
    student_id: int,
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    if not classroom.has_student(student_id):
        raise HTTPException(status_code=400, detail="Student is not enrolled in this class")

    student = await db.get(User, student_id)
    unenroll(classroom, student, student_id)
    await db.commit()
    await db.refresh(classroom)

    return {
        "message": "Student removed from class successfully",
        "class": await _class_with_members(db, classroom),
    }


@router.get("/{class_id}/stats")
async def class_stats(
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    media_count = (
        await db.execute(select(func.count(Media.id)).where(Media.class_id == classroom.id))
    ).scalar() or 0
    assignment_count = (
        await db.execute(
            select(func.count(Assignment.id)).where(Assignment.class_id == classroom.id)
        )
    ).scalar() or 0

    recent_media = (
        await db.execute(
            select(Media)
            .where(Media.class_id == classroom.id)
            .order_by(Media.uploaded_at.desc(), Media.id.desc())
            .limit(5)
        )
    ).scalars().all()
    recent_assignments = (
        await db.execute(
            select(Assignment)
            .where(Assignment.class_id == classroom.id)
            .order_by(Assignment.created_at.desc(), Assignment.id.desc())
            .limit(5)
        )
    ).scalars().all()

    return {
        "stats": {
            "student_count": len(classroom.students or []),
            "media_count": media_count,
            "assignment_count": assignment_count,
            "recent_media": [
                {"id": m.id, "title": m.title, "type": m.type, "uploaded_at": m.uploaded_at}
                for m in recent_media
            ],
            "recent_assignments": [
                {
                    "id": a.id,
                    "title": a.title,
                    "due_date": a.due_date,
                    "created_at": a.created_at,
                }
                for a in recent_assignments
            ],
        }
    }
