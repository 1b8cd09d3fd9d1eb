"""Assignment API routes - authoring, submission, grading."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.dependencies import (
    can_view_class,
    get_class_or_404,
    get_current_user,
    require_student,
    require_teacher,
)
from edutrack.models.assignment import Assignment
from edutrack.models.user import User
from edutrack.serializers import assignment_out, pagination, user_summary
from edutrack.services.analytics import load_users
from edutrack.services.assignments import accepts_submission, set_questions
from edutrack.services.periods import as_utc, utcnow
from edutrack.services.scoring import grade_submission, manual_grade

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

QUESTION_TYPE_PATTERN = "^(multiple_choice|short_answer|long_answer|true_false)$"


class QuestionIn(BaseModel):
    id: str | None = None
    text: str = Field(min_length=1, max_length=1000)
    type: str = Field(default="short_answer", pattern=QUESTION_TYPE_PATTERN)
    options: list[str] = []
    correct_answer: str = ""
    points: int = Field(default=1, ge=1)


class AssignmentCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    instructions: str | None = Field(default=None, max_length=2000)
    questions: list[QuestionIn] = Field(min_length=1)
    due_date: datetime
    class_id: int
    allow_late_submission: bool = False
    late_penalty: int = Field(default=0, ge=0, le=100)


class AssignmentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    instructions: str | None = Field(default=None, max_length=2000)
    questions: list[QuestionIn] | None = Field(default=None, min_length=1)
    due_date: datetime | None = None
    allow_late_submission: bool | None = None
    late_penalty: int | None = Field(default=None, ge=0, le=100)
    is_published: bool | None = None


class AnswerIn(BaseModel):
    question_id: str
    answer: str = Field(min_length=1, max_length=2000)


class SubmitRequest(BaseModel):
    answers: list[AnswerIn] = Field(min_length=1)


class GradeRequest(BaseModel):
    score: float = Field(ge=0)
    feedback: str | None = Field(default=None, max_length=1000)


async def _assignment_or_404(db: AsyncSession, assignment_id: int) -> Assignment:
    assignment = await db.get(Assignment, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


async def _require_class_teacher(db: AsyncSession, assignment: Assignment, user: User) -> None:
    classroom = await get_class_or_404(db, assignment.class_id)
    if classroom.teacher_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("", status_code=201)
async def create_assignment(
    body: AssignmentCreateRequest,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    classroom = await get_class_or_404(db, body.class_id)
    if classroom.teacher_id != user.id:
        raise HTTPException(
            status_code=403,
            detail="Access denied. Only class teacher can create assignments.",
        )

    assignment = Assignment(
        title=body.title.strip(),
        description=body.description,
        instructions=body.instructions,
        due_date=as_utc(body.due_date),
        class_id=classroom.id,
        created_by=user.id,
        submissions=[],
        allow_late_submission=body.allow_late_submission,
        late_penalty=body.late_penalty,
    )
    set_questions(assignment, [q.model_dump() for q in body.questions])
    db.add(assignment)
    await db.commit()
    await db.refresh(assignment)
    logger.info(
        "Created assignment %s in class %s (%d points)",
        assignment.id, classroom.id, assignment.total_points,
    )

    return {
        "message": "Assignment created successfully",
        "assignment": assignment_out(assignment, viewer=user),
    }


@router.get("/class/{class_id}")
async def list_class_assignments(
    class_id: int,
    status: str | None = Query(None, pattern="^(submitted|pending)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active assignments of a class, newest first.

    Students may filter on whether they have submitted.
    """
    classroom = await get_class_or_404(db, class_id)
    if not can_view_class(user, classroom):
        raise HTTPException(status_code=403, detail="Access denied")

    result = await db.execute(
        select(Assignment)
        .where(Assignment.class_id == class_id, Assignment.is_active == True)  # noqa: E712
        .order_by(Assignment.created_at.desc(), Assignment.id.desc())
    )
    assignments = list(result.scalars().all())

    if user.role == "student" and status:
        submitted = status == "submitted"
        assignments = [
            a for a in assignments if (a.submission_for(user.id) is not None) == submitted
        ]

    total = len(assignments)
    offset = (page - 1) * limit
    return {
        "assignments": [
            assignment_out(a, viewer=user) for a in assignments[offset:offset + limit]
        ],
        "pagination": pagination(page, limit, total),
    }


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    assignment = await _assignment_or_404(db, assignment_id)
    classroom = await get_class_or_404(db, assignment.class_id)
    if not can_view_class(user, classroom):
        raise HTTPException(status_code=403, detail="Access denied")
    return {"assignment": assignment_out(assignment, viewer=user)}


@router.post("/{assignment_id}/submit")
async def submit_assignment(
    assignment_id: int,
    body: SubmitRequest,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    assignment = await _assignment_or_404(db, assignment_id)
    classroom = await get_class_or_404(db, assignment.class_id)
    if not classroom.has_student(user.id):
        raise HTTPException(status_code=403, detail="Access denied")

    if not accepts_submission(assignment, utcnow()):
        raise HTTPException(status_code=400, detail="Assignment submission deadline has passed")

    submission = grade_submission(
        assignment, user.id, [a.model_dump() for a in body.answers]
    )
    await db.commit()
    await db.refresh(assignment)

    return {
        "message": "Assignment submitted successfully",
        "submission": submission,
        "assignment": assignment_out(assignment, viewer=user),
    }


@router.put("/{assignment_id}/grade/{student_id}")
async def grade_assignment(
    assignment_id: int,
    student_id: int,
    body: GradeRequest,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    assignment = await _assignment_or_404(db, assignment_id)
    await _require_class_teacher(db, assignment, user)

    submission = manual_grade(assignment, student_id, body.score, body.feedback, user.id)
    await db.commit()
    await db.refresh(assignment)

    return {
        "message": "Assignment graded successfully",
        "submission": submission,
        "assignment": assignment_out(assignment, viewer=user),
    }


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: int,
    body: AssignmentUpdateRequest,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    assignment = await _assignment_or_404(db, assignment_id)
    await _require_class_teacher(db, assignment, user)

    if body.title:
        assignment.title = body.title.strip()
    if body.description is not None:
        assignment.description = body.description
    if body.instructions is not None:
        assignment.instructions = body.instructions
    if body.due_date:
        assignment.due_date = as_utc(body.due_date)
    if body.allow_late_submission is not None:
        assignment.allow_late_submission = body.allow_late_submission
    if body.late_penalty is not None:
        assignment.late_penalty = body.late_penalty
    if body.is_published is not None:
        assignment.is_published = body.is_published
    if body.questions:
        set_questions(assignment, [q.model_dump() for q in body.questions])
    assignment.updated_at = utcnow()

    await db.commit()
    await db.refresh(assignment)
    return {
        "message": "Assignment updated successfully",
        "assignment": assignment_out(assignment, viewer=user),
    }


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: int,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    assignment = await _assignment_or_404(db, assignment_id)
    await _require_class_teacher(db, assignment, user)

    await db.delete(assignment)
    await db.commit()
    logger.info("Deleted assignment %s", assignment_id)
    return {"message": "Assignment deleted successfully"}


@router.get("/{assignment_id}/submissions")
async def list_submissions(
    assignment_id: int,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    """All submissions with the submitting student and grader resolved."""
    assignment = await _assignment_or_404(db, assignment_id)
    await _require_class_teacher(db, assignment, user)

    submissions = assignment.submissions or []
    people = await load_users(
        db,
        [s["student_id"] for s in submissions]
        + [s["graded_by"] for s in submissions if s.get("graded_by")],
    )
    return {
        "assignment": assignment_out(assignment, viewer=user),
        "submissions": [
            {
                **sub,
                "student": user_summary(people.get(sub["student_id"])),
                "grader": user_summary(people.get(sub.get("graded_by"))),
            }
            for sub in submissions
        ],
    }
