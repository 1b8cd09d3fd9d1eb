"""Assignment construction helpers - question normalization and derived totals."""

import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from edutrack.models.assignment import Assignment
from edutrack.services.periods import as_utc
from edutrack.services.scoring import total_points


def build_questions(raw_questions: Iterable[Mapping]) -> list[dict]:
    """Assign ids and 1-based order to questions; points default to 1."""
    questions = []
    for index, q in enumerate(raw_questions):
        questions.append({
            "id": q.get("id") or uuid.uuid4().hex,
            "text": q["text"],
            "type": q.get("type") or "short_answer",
            "options": list(q.get("options") or []),
            "correct_answer": q.get("correct_answer") or "",
            "points": q.get("points") or 1,
            "order": index + 1,
        })
    return questions


def set_questions(assignment: Assignment, raw_questions: Iterable[Mapping]) -> None:
    """Replace the question list and recompute total_points."""
    assignment.questions = build_questions(raw_questions)
    assignment.total_points = total_points(assignment.questions)
    assignment.updated_at = datetime.now(timezone.utc)


def is_past_due(assignment: Assignment, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(now) > as_utc(assignment.due_date)


def accepts_submission(assignment: Assignment, now: datetime | None = None) -> bool:
    return assignment.allow_late_submission or not is_past_due(assignment, now)
