"""Response shaping helpers shared by the routers."""

import math
from typing import Any

from edutrack.models.assignment import Assignment
from edutrack.models.classroom import Classroom
from edutrack.models.media import Media
from edutrack.models.practice import PracticeSession
from edutrack.models.user import User
from edutrack.services.scoring import (
    average_watch_percentage,
    performance_rating,
    round_half_up,
)


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "current": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
    }


def user_summary(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "is_active": user.is_active,
        "parent_email": user.parent_email,
        "class_ids": list(user.class_ids or []),
        "created_at": user.created_at,
    }


def classroom_out(classroom: Classroom, *, include_code: bool = True) -> dict:
    data = {
        "id": classroom.id,
        "name": classroom.name,
        "subject": classroom.subject,
        "description": classroom.description,
        "teacher_id": classroom.teacher_id,
        "students": list(classroom.students or []),
        "student_count": len(classroom.students or []),
        "max_students": classroom.max_students,
        "is_active": classroom.is_active,
        "created_at": classroom.created_at,
        "updated_at": classroom.updated_at,
    }
    if include_code:
        data["class_code"] = classroom.class_code
    return data


def media_out(media: Media) -> dict:
    views = media.views or []
    return {
        "id": media.id,
        "title": media.title,
        "description": media.description,
        "file_path": media.file_path,
        "original_name": media.original_name,
        "mime_type": media.mime_type,
        "file_size": media.file_size,
        "type": media.type,
        "category": media.category,
        "class_id": media.class_id,
        "uploaded_by": media.uploaded_by,
        "tags": list(media.tags or []),
        "is_public": media.is_public,
        "duration": media.duration,
        "thumbnail": media.thumbnail,
        "view_count": len(views),
        "unique_viewers": len({v["student_id"] for v in views}),
        "average_watch_percentage": average_watch_percentage(views),
        "uploaded_at": media.uploaded_at,
        "updated_at": media.updated_at,
    }


def assignment_out(assignment: Assignment, *, viewer: User | None = None) -> dict:
    """Assignment payload.

    Students never see correct answers or other students' submissions; they
    get their own submission and a submitted/pending status instead.
    """
    submissions = assignment.submissions or []
    data: dict[str, Any] = {
        "id": assignment.id,
        "title": assignment.title,
        "description": assignment.description,
        "instructions": assignment.instructions,
        "total_points": assignment.total_points,
        "due_date": assignment.due_date,
        "class_id": assignment.class_id,
        "created_by": assignment.created_by,
        "is_published": assignment.is_published,
        "allow_late_submission": assignment.allow_late_submission,
        "late_penalty": assignment.late_penalty,
        "submission_count": len(submissions),
        "created_at": assignment.created_at,
        "updated_at": assignment.updated_at,
    }

    if viewer is not None and viewer.role == "student":
        data["questions"] = [
            {k: v for k, v in q.items() if k != "correct_answer"}
            for q in assignment.questions or []
        ]
        mine = assignment.submission_for(viewer.id)
        data["submission_status"] = "submitted" if mine else "pending"
        data["my_submission"] = mine
    else:
        data["questions"] = list(assignment.questions or [])
        data["submissions"] = list(submissions)
        data["average_score"] = (
            round_half_up(sum(s.get("score", 0) for s in submissions) / len(submissions))
            if submissions else 0
        )
    return data


def practice_out(practice: PracticeSession) -> dict:
    return {
        "id": practice.id,
        "student_id": practice.student_id,
        "type": practice.type,
        "category": practice.category,
        "content": practice.content,
        "target_content": practice.target_content,
        "accuracy": practice.accuracy,
        "strokes": practice.strokes,
        "time_spent": practice.time_spent,
        "attempts": practice.attempts,
        "difficulty": practice.difficulty,
        "writing_data": practice.writing_data,
        "typing_data": practice.typing_data,
        "score": practice.score,
        "max_score": practice.max_score,
        "feedback": practice.feedback,
        "is_completed": practice.is_completed,
        "completion_time": practice.completion_time,
        "performance_rating": performance_rating(practice.accuracy or 0),
        "class_id": practice.class_id,
        "assignment_id": practice.assignment_id,
        "device_info": practice.device_info,
        "date": practice.date,
    }
