"""Scoring engine - turns stored records into derived metrics.

Covers assignment auto-grading, manual grading, handwriting similarity,
typing speed, media watch tracking and the weighted overall progress score.
Every function here is synchronous and does no I/O; callers fetch the
documents and persist whatever the functions hand back.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from edutrack.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_MAX_SCORE = 100

COMPLETION_ACCURACY = 80
COMPLETION_ATTEMPTS = 3

CHARS_PER_WORD = 5

# Overall progress weights (practice / assignments / media)
PRACTICE_WEIGHT = 40
ASSIGNMENT_WEIGHT = 40
MEDIA_WEIGHT = 20

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


@dataclass
class AnswerResult:
    question_id: Any
    answer: str
    is_correct: bool = False
    points_earned: int = 0


@dataclass
class GradeResult:
    score: int
    percentage: int
    answers: list[AnswerResult] = field(default_factory=list)


@dataclass
class WritingResult:
    accuracy: int
    score: int


@dataclass
class TypingMetrics:
    characters_per_minute: int
    words_per_minute: int
    error_count: int


# ===================================================================
# Public API
# ===================================================================


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def total_points(questions: Iterable[Mapping]) -> int:
    """Sum of question point values."""
    return sum(q.get("points", 1) for q in questions)


def submission_percentage(score: float, points: int) -> int:
    """score / points as a whole percentage; 0 when the assignment has no points."""
    if points <= 0:
        return 0
    return round_half_up(score / points * 100)


def grade_answers(
    questions: Sequence[Mapping], points: int, answers: Iterable[Mapping]
) -> GradeResult:
    """Auto-grade submitted answers by exact, case-insensitive text match.

    Every question type is scored the same way: a full-point award when the
    trimmed answer equals the trimmed correct answer, nothing otherwise.
    Answers pointing at unknown questions earn zero.
    """
    by_id = {q["id"]: q for q in questions}

    score = 0
    results: list[AnswerResult] = []
    for answer in answers:
        question_id = answer.get("question_id")
        text = answer.get("answer") or ""
        result = AnswerResult(question_id=question_id, answer=text)

        question = by_id.get(question_id)
        if question is not None:
            expected = question.get("correct_answer") or ""
            if _normalize_answer(text) == _normalize_answer(expected):
                result.is_correct = True
                result.points_earned = question.get("points", 1)
                score += result.points_earned

        results.append(result)

    return GradeResult(
        score=score,
        percentage=submission_percentage(score, points),
        answers=results,
    )


def grade_submission(
    assignment, student_id: int, answers: Iterable[Mapping], *, now: datetime | None = None
) -> dict:
    """Grade a student's answers and store them as their only submission.

    Any earlier submission by the same student is dropped first, so the
    assignment keeps exactly one submission per student id.
    """
    result = grade_answers(assignment.questions or [], assignment.total_points or 0, answers)
    submitted_at = now or datetime.now(timezone.utc)

    submission = {
        "student_id": student_id,
        "answers": [
            {
                "question_id": a.question_id,
                "answer": a.answer,
                "is_correct": a.is_correct,
                "points_earned": a.points_earned,
            }
            for a in result.answers
        ],
        "score": result.score,
        "percentage": result.percentage,
        "feedback": None,
        "submitted_at": submitted_at.isoformat(),
        "graded_at": None,
        "graded_by": None,
    }

    remaining = [
        sub for sub in (assignment.submissions or []) if sub["student_id"] != student_id
    ]
    # Reassign rather than mutate so the JSON column is flagged dirty
    assignment.submissions = remaining + [submission]
    logger.debug(
        "Graded submission student=%s score=%s/%s",
        student_id, result.score, assignment.total_points,
    )
    return submission


def manual_grade(
    assignment,
    student_id: int,
    score: float,
    feedback: str | None,
    grader_id: int,
    *,
    now: datetime | None = None,
) -> dict:
    """Overwrite the score and feedback on a student's existing submission."""
    submissions = [dict(sub) for sub in (assignment.submissions or [])]
    for sub in submissions:
        if sub["student_id"] == student_id:
            sub["score"] = score
            sub["percentage"] = submission_percentage(score, assignment.total_points or 0)
            sub["feedback"] = feedback
            sub["graded_at"] = (now or datetime.now(timezone.utc)).isoformat()
            sub["graded_by"] = grader_id
            assignment.submissions = submissions
            return sub

    raise NotFoundError("Submission not found")


def content_similarity(content: str | None, target: str | None) -> float:
    """Positional character agreement between two strings, in [0, 1].

    Counts equal characters at the same index over the shorter string and
    divides by the longer length, so length mismatches are penalized.
    """
    if not content or not target:
        return 0.0

    norm1 = _normalize_text(content)
    norm2 = _normalize_text(target)
    if norm1 == norm2:
        return 1.0

    max_len = max(len(norm1), len(norm2))
    if max_len == 0:
        return 1.0

    matches = sum(1 for a, b in zip(norm1, norm2) if a == b)
    return matches / max_len


def evaluate_writing(
    content: str | None, target_content: str | None, max_score: int = DEFAULT_MAX_SCORE
) -> WritingResult:
    similarity = content_similarity(content, target_content)
    accuracy = round_half_up(similarity * 100)
    return WritingResult(
        accuracy=accuracy,
        score=round_half_up(accuracy / 100 * max_score),
    )


def evaluate_typing(time_spent: float, keystrokes: Iterable[Mapping]) -> TypingMetrics:
    """Characters/words per minute and error count from keystroke data."""
    keystrokes = list(keystrokes or [])
    correct = sum(1 for k in keystrokes if k.get("is_correct"))
    minutes = (time_spent or 0) / 60

    if minutes > 0:
        cpm = round_half_up(correct / minutes)
        wpm = round_half_up(cpm / CHARS_PER_WORD)
    else:
        cpm = wpm = 0

    return TypingMetrics(
        characters_per_minute=cpm,
        words_per_minute=wpm,
        error_count=len(keystrokes) - correct,
    )


def is_completed(accuracy: float | None, attempts: int | None) -> bool:
    return (accuracy or 0) >= COMPLETION_ACCURACY or (attempts or 1) >= COMPLETION_ATTEMPTS


def performance_rating(accuracy: float) -> str:
    if accuracy >= 90:
        return "excellent"
    if accuracy >= 75:
        return "good"
    if accuracy >= 60:
        return "fair"
    return "needs_improvement"


def record_view(
    media, student_id: int, percentage: float = 0, *, now: datetime | None = None
) -> dict:
    """Upsert a student's view on a media item.

    Watch percentage per viewer never decreases; the view date is refreshed
    on every call.
    """
    viewed_at = (now or datetime.now(timezone.utc)).isoformat()
    views = [dict(v) for v in (media.views or [])]

    for view in views:
        if view["student_id"] == student_id:
            view["percentage"] = max(view.get("percentage", 0), percentage)
            view["date"] = viewed_at
            media.views = views
            return view

    view = {"student_id": student_id, "percentage": percentage, "date": viewed_at}
    media.views = views + [view]
    return view


def average_watch_percentage(views: Sequence[Mapping]) -> int:
    if not views:
        return 0
    return round_half_up(sum(v.get("percentage", 0) for v in views) / len(views))


def overall_progress_score(
    practice_stats: Sequence,
    assignment_performance: Sequence,
    media_consumption: Sequence,
) -> int:
    """Weighted 0-100 progress score over whichever signals are present.

    Practice accuracy and assignment percentage carry 40 points each, media
    watch percentage 20. Missing categories are left out of the denominator,
    so a student with a single kind of activity can still reach 100.
    """
    score = 0.0
    weight = 0

    if practice_stats:
        avg = _mean(s.average_accuracy for s in practice_stats)
        score += avg / 100 * PRACTICE_WEIGHT
        weight += PRACTICE_WEIGHT

    if assignment_performance:
        avg = _mean(p.average_percentage for p in assignment_performance)
        score += avg / 100 * ASSIGNMENT_WEIGHT
        weight += ASSIGNMENT_WEIGHT

    if media_consumption:
        avg = _mean(m.average_watch_percentage for m in media_consumption)
        score += avg / 100 * MEDIA_WEIGHT
        weight += MEDIA_WEIGHT

    if weight == 0:
        return 0
    return round_half_up(score / weight * 100)


# ===================================================================
# Internal helpers
# ===================================================================


def _normalize_answer(text: str) -> str:
    return text.strip().lower()


def _normalize_text(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower()).strip()


def _mean(values: Iterable[float | None]) -> float:
    values = [v or 0 for v in values]
    if not values:
        return 0.0
    return sum(values) / len(values)
