"""Practice session factory - computes derived metrics once, at save time."""

from collections.abc import Mapping
from typing import Any

from edutrack.models.practice import PracticeSession
from edutrack.services import scoring


def apply_evaluation(practice: PracticeSession) -> None:
    """Fill in typing metrics or writing accuracy/score, then completion.

    Typing sessions get speed metrics from their keystroke data; writing
    sessions with a target get accuracy and score from content similarity.
    Other sessions, and typing sessions without keystrokes, keep the
    metrics they were saved with.
    """
    if practice.type == "typing" and practice.typing_data and "keystroke_data" in practice.typing_data:
        typing_data = dict(practice.typing_data)
        metrics = scoring.evaluate_typing(
            practice.time_spent or 0, typing_data["keystroke_data"] or []
        )
        typing_data.update(
            characters_per_minute=metrics.characters_per_minute,
            words_per_minute=metrics.words_per_minute,
            error_count=metrics.error_count,
        )
        practice.typing_data = typing_data
    elif practice.type == "writing" and practice.target_content:
        result = scoring.evaluate_writing(
            practice.content, practice.target_content, practice.max_score or scoring.DEFAULT_MAX_SCORE
        )
        practice.accuracy = result.accuracy
        practice.score = result.score

    mark_completion(practice)


def mark_completion(practice: PracticeSession) -> None:
    """Flag the session complete once accuracy or attempts reach the threshold."""
    if scoring.is_completed(practice.accuracy, practice.attempts):
        practice.is_completed = True
        practice.completion_time = practice.time_spent


def build_practice(student_id: int, data: Mapping[str, Any]) -> PracticeSession:
    practice = PracticeSession(
        student_id=student_id,
        type=data["type"],
        category=data["category"],
        content=data["content"],
        target_content=data.get("target_content"),
        accuracy=data.get("accuracy") or 0,
        strokes=data.get("strokes") or 0,
        time_spent=data.get("time_spent") or 0,
        attempts=data.get("attempts") or 1,
        difficulty=data.get("difficulty") or "easy",
        writing_data=data.get("writing_data"),
        typing_data=data.get("typing_data"),
        max_score=scoring.DEFAULT_MAX_SCORE,
        score=0,
        is_completed=False,
        class_id=data.get("class_id"),
        assignment_id=data.get("assignment_id"),
        device_info=data.get("device_info"),
        is_active=True,
    )
    apply_evaluation(practice)
    return practice
