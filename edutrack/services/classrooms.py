"""Classroom factory and enrollment helpers."""

import logging
import secrets
import string
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.exceptions import ValidationError
from edutrack.models.classroom import Classroom
from edutrack.models.user import User

logger = logging.getLogger(__name__)

CLASS_CODE_LENGTH = 6
CLASS_CODE_ALPHABET = string.ascii_uppercase + string.digits


def random_class_code() -> str:
    return "".join(secrets.choice(CLASS_CODE_ALPHABET) for _ in range(CLASS_CODE_LENGTH))


async def generate_class_code(db: AsyncSession) -> str:
    """Draw random codes until one is not taken by an existing class."""
    while True:
        code = random_class_code()
        result = await db.execute(select(Classroom.id).where(Classroom.class_code == code))
        if result.scalar_one_or_none() is None:
            return code


async def create_classroom(
    db: AsyncSession,
    teacher: User,
    name: str,
    subject: str,
    description: str | None = None,
    max_students: int | None = None,
) -> Classroom:
    classroom = Classroom(
        name=name.strip(),
        subject=subject.strip(),
        description=description,
        teacher_id=teacher.id,
        students=[],
        class_code=await generate_class_code(db),
        max_students=max_students or 30,
    )
    db.add(classroom)
    await db.commit()
    await db.refresh(classroom)
    logger.info("Created class %s (%s) for teacher %s", classroom.id, classroom.class_code, teacher.id)
    return classroom


def enroll(classroom: Classroom, student: User) -> None:
    """Add a student to a class and the class to the student's profile."""
    if not classroom.is_active:
        raise ValidationError("This class is no longer active")
    if classroom.has_student(student.id):
        raise ValidationError("Student is already enrolled in this class")
    if len(classroom.students or []) >= classroom.max_students:
        raise ValidationError("This class is full")

    now = datetime.now(timezone.utc)
    classroom.students = list(classroom.students or []) + [student.id]
    classroom.updated_at = now
    if classroom.id not in (student.class_ids or []):
        student.class_ids = list(student.class_ids or []) + [classroom.id]
        student.updated_at = now


def unenroll(classroom: Classroom, student: User | None, student_id: int) -> None:
    now = datetime.now(timezone.utc)
    classroom.students = [sid for sid in classroom.students or [] if sid != student_id]
    classroom.updated_at = now
    if student is not None:
        student.class_ids = [cid for cid in student.class_ids or [] if cid != classroom.id]
        student.updated_at = now
