"""Aggregation layer - grouped, time-windowed rollups for stats and reports.

Each rollup runs in two phases: fetch the owned rows for the window, then
fold them into per-key accumulators in process. Foreign keys (class, student)
are resolved with one explicit ``IN`` lookup per rollup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.models.assignment import Assignment
from edutrack.models.classroom import Classroom
from edutrack.models.media import Media
from edutrack.models.practice import PracticeSession
from edutrack.models.user import User
from edutrack.services.periods import DateRange, as_utc, parse_timestamp

logger = logging.getLogger(__name__)

TOP_PERFORMER_LIMIT = 5
STRUGGLING_LIMIT = 5
STRUGGLING_ACCURACY = 60
STRUGGLING_MIN_PRACTICES = 3


# ---------------------------------------------------------------------------
# Result shapes
# ---------------------------------------------------------------------------


class PracticeGroupStats(BaseModel):
    key: str
    total_practices: int = 0
    average_accuracy: float = 0
    average_score: float = 0
    total_time_spent: int = 0
    completed_practices: int = 0


class ActivityBucket(BaseModel):
    year: int
    month: int
    day: int
    practices: int = 0
    total_time: int = 0
    average_accuracy: float = 0


class WeeklyTrend(BaseModel):
    year: int
    week: int
    total_practices: int = 0
    total_time: int = 0
    average_accuracy: float = 0
    average_score: float = 0


class AssignmentPerformance(BaseModel):
    class_id: int
    class_name: str = ""
    subject: str = ""
    total_assignments: int = 0
    average_score: float = 0
    average_percentage: float = 0
    total_points: int = 0
    earned_points: float = 0


class MediaConsumption(BaseModel):
    class_id: int
    class_name: str = ""
    subject: str = ""
    total_videos: int = 0
    average_watch_percentage: float = 0
    total_watch_time: float = 0


class StudentEngagement(BaseModel):
    student_id: int
    student_name: str = ""
    student_email: str = ""
    total_practices: int = 0
    average_accuracy: float = 0
    total_time_spent: int = 0


class MediaTypeStats(BaseModel):
    type: str
    count: int = 0
    total_views: int = 0
    average_watch_percentage: float = 0


class ClassAssignmentStats(BaseModel):
    total_assignments: int = 0
    total_submissions: int = 0
    average_score: float = 0
    average_percentage: float = 0


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


class _Bucket:
    """Running count plus named sums for one group key."""

    __slots__ = ("count", "sums")

    def __init__(self) -> None:
        self.count = 0
        self.sums: dict[str, float] = {}

    def add(self, **values: float | None) -> None:
        self.count += 1
        for name, value in values.items():
            self.sums[name] = self.sums.get(name, 0) + (value or 0)

    def total(self, name: str) -> float:
        return self.sums.get(name, 0)

    def mean(self, name: str) -> float:
        if self.count == 0:
            return 0
        return self.total(name) / self.count


def _fold(
    rows: Iterable[Any],
    key: Callable[[Any], Hashable],
    values: Callable[[Any], dict[str, float | None]],
) -> dict[Hashable, _Bucket]:
    buckets: dict[Hashable, _Bucket] = {}
    for row in rows:
        buckets.setdefault(key(row), _Bucket()).add(**values(row))
    return buckets


def _mean_of(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0


# ===================================================================
# Reducers (pure)
# ===================================================================


def group_practice_stats(
    practices: Iterable[PracticeSession], by: str = "type"
) -> list[PracticeGroupStats]:
    """Per-``by`` practice stats.

    Grouping by type comes back in key order; grouping by anything else is
    sorted by practice count, busiest first.
    """
    buckets = _fold(
        practices,
        key=lambda p: getattr(p, by),
        values=lambda p: {
            "accuracy": p.accuracy,
            "score": p.score,
            "time": p.time_spent,
            "completed": 1 if p.is_completed else 0,
        },
    )
    stats = [
        PracticeGroupStats(
            key=str(key),
            total_practices=b.count,
            average_accuracy=b.mean("accuracy"),
            average_score=b.mean("score"),
            total_time_spent=int(b.total("time")),
            completed_practices=int(b.total("completed")),
        )
        for key, b in buckets.items()
    ]
    if by == "type":
        return sorted(stats, key=lambda s: s.key)
    return sorted(stats, key=lambda s: s.total_practices, reverse=True)


def daily_activity(practices: Iterable[PracticeSession]) -> list[ActivityBucket]:
    buckets = _fold(
        practices,
        key=lambda p: (p.date.year, p.date.month, p.date.day),
        values=lambda p: {"accuracy": p.accuracy, "time": p.time_spent},
    )
    return [
        ActivityBucket(
            year=year,
            month=month,
            day=day,
            practices=b.count,
            total_time=int(b.total("time")),
            average_accuracy=b.mean("accuracy"),
        )
        for (year, month, day), b in sorted(buckets.items())
    ]


def weekly_trends(practices: Iterable[PracticeSession]) -> list[WeeklyTrend]:
    """Practice trend per ISO week."""
    buckets = _fold(
        practices,
        key=lambda p: tuple(p.date.isocalendar())[:2],
        values=lambda p: {
            "accuracy": p.accuracy,
            "score": p.score,
            "time": p.time_spent,
        },
    )
    return [
        WeeklyTrend(
            year=year,
            week=week,
            total_practices=b.count,
            total_time=int(b.total("time")),
            average_accuracy=b.mean("accuracy"),
            average_score=b.mean("score"),
        )
        for (year, week), b in sorted(buckets.items())
    ]


def assignment_performance(
    assignments: Iterable[Assignment],
    student_id: int,
    classes: dict[int, Classroom],
) -> list[AssignmentPerformance]:
    """Per-class submission rollup for one student.

    Groups whose class no longer exists are dropped.
    """
    rows = []
    for assignment in assignments:
        sub = assignment.submission_for(student_id)
        if sub is not None:
            rows.append((assignment, sub))

    buckets = _fold(
        rows,
        key=lambda row: row[0].class_id,
        values=lambda row: {
            "score": row[1].get("score"),
            "percentage": row[1].get("percentage"),
            "points": row[0].total_points,
        },
    )

    result = []
    for class_id, b in buckets.items():
        classroom = classes.get(class_id)
        if classroom is None:
            continue
        result.append(
            AssignmentPerformance(
                class_id=class_id,
                class_name=classroom.name,
                subject=classroom.subject,
                total_assignments=b.count,
                average_score=b.mean("score"),
                average_percentage=b.mean("percentage"),
                total_points=int(b.total("points")),
                earned_points=b.total("score"),
            )
        )
    return result


def media_consumption(
    media_items: Iterable[Media],
    student_id: int,
    classes: dict[int, Classroom],
) -> list[MediaConsumption]:
    """Per-class watch rollup for one student."""
    rows = []
    for media in media_items:
        for view in media.views or []:
            if view["student_id"] == student_id:
                rows.append((media.class_id, view.get("percentage", 0)))

    buckets = _fold(
        rows,
        key=lambda row: row[0],
        values=lambda row: {"percentage": row[1]},
    )

    result = []
    for class_id, b in buckets.items():
        classroom = classes.get(class_id)
        if classroom is None:
            continue
        result.append(
            MediaConsumption(
                class_id=class_id,
                class_name=classroom.name,
                subject=classroom.subject,
                total_videos=b.count,
                average_watch_percentage=b.mean("percentage"),
                total_watch_time=b.total("percentage"),
            )
        )
    return result


def student_engagement(
    practices: Iterable[PracticeSession], users: dict[int, User]
) -> list[StudentEngagement]:
    """Per-student practice engagement, most active first."""
    buckets = _fold(
        practices,
        key=lambda p: p.student_id,
        values=lambda p: {"accuracy": p.accuracy, "time": p.time_spent},
    )

    result = []
    for student_id, b in buckets.items():
        user = users.get(student_id)
        if user is None:
            continue
        result.append(
            StudentEngagement(
                student_id=student_id,
                student_name=user.name,
                student_email=user.email,
                total_practices=b.count,
                average_accuracy=b.mean("accuracy"),
                total_time_spent=int(b.total("time")),
            )
        )
    return sorted(result, key=lambda e: e.total_practices, reverse=True)


def top_performers(engagement: Sequence[StudentEngagement]) -> list[StudentEngagement]:
    return list(engagement[:TOP_PERFORMER_LIMIT])


def struggling_students(engagement: Sequence[StudentEngagement]) -> list[StudentEngagement]:
    """Low accuracy or low activity, independent of the top-performer list."""
    flagged = [
        e
        for e in engagement
        if e.average_accuracy < STRUGGLING_ACCURACY
        or e.total_practices < STRUGGLING_MIN_PRACTICES
    ]
    return flagged[:STRUGGLING_LIMIT]


def media_type_stats(media_items: Iterable[Media]) -> list[MediaTypeStats]:
    """Per media type: item count, view count, mean of per-item watch means.

    Items without views do not contribute to the watch mean.
    """
    groups: dict[str, dict[str, Any]] = {}
    for media in media_items:
        group = groups.setdefault(media.type, {"count": 0, "views": 0, "means": []})
        views = media.views or []
        group["count"] += 1
        group["views"] += len(views)
        if views:
            group["means"].append(_mean_of([v.get("percentage", 0) for v in views]))

    return [
        MediaTypeStats(
            type=media_type,
            count=group["count"],
            total_views=group["views"],
            average_watch_percentage=_mean_of(group["means"]),
        )
        for media_type, group in sorted(groups.items())
    ]


def class_assignment_stats(assignments: Iterable[Assignment]) -> ClassAssignmentStats:
    score_means = []
    percentage_means = []
    total = 0
    submissions = 0
    for assignment in assignments:
        subs = assignment.submissions or []
        total += 1
        submissions += len(subs)
        if subs:
            score_means.append(_mean_of([s.get("score", 0) for s in subs]))
            percentage_means.append(_mean_of([s.get("percentage", 0) for s in subs]))

    return ClassAssignmentStats(
        total_assignments=total,
        total_submissions=submissions,
        average_score=_mean_of(score_means),
        average_percentage=_mean_of(percentage_means),
    )


# ===================================================================
# Store-backed rollups
# ===================================================================


async def fetch_practices(
    db: AsyncSession,
    window: DateRange,
    *,
    student_id: int | None = None,
    class_id: int | None = None,
) -> list[PracticeSession]:
    """Active practice sessions dated inside the window."""
    query = select(PracticeSession).where(
        PracticeSession.is_active == True,  # noqa: E712
        PracticeSession.date >= window.start,
        PracticeSession.date <= window.end,
    )
    if student_id is not None:
        query = query.where(PracticeSession.student_id == student_id)
    if class_id is not None:
        query = query.where(PracticeSession.class_id == class_id)

    result = await db.execute(query.order_by(PracticeSession.date.desc()))
    return list(result.scalars().all())


async def load_classes(db: AsyncSession, class_ids: Iterable[int]) -> dict[int, Classroom]:
    ids = set(class_ids)
    if not ids:
        return {}
    result = await db.execute(select(Classroom).where(Classroom.id.in_(ids)))
    return {c.id: c for c in result.scalars().all()}


async def load_users(db: AsyncSession, user_ids: Iterable[int]) -> dict[int, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def student_practice_stats(
    db: AsyncSession, student_id: int, window: DateRange
) -> list[PracticeGroupStats]:
    practices = await fetch_practices(db, window, student_id=student_id)
    return group_practice_stats(practices, by="type")


async def student_assignment_performance(
    db: AsyncSession, student_id: int, window: DateRange
) -> list[AssignmentPerformance]:
    """Assignments created inside the window that the student submitted."""
    result = await db.execute(
        select(Assignment).where(
            Assignment.created_at >= window.start,
            Assignment.created_at <= window.end,
        )
    )
    assignments = [
        a for a in result.scalars().all() if a.submission_for(student_id) is not None
    ]
    classes = await load_classes(db, (a.class_id for a in assignments))
    return assignment_performance(assignments, student_id, classes)


async def student_media_consumption(
    db: AsyncSession, student_id: int, window: DateRange
) -> list[MediaConsumption]:
    """Media uploaded inside the window that the student viewed."""
    result = await db.execute(
        select(Media).where(
            Media.uploaded_at >= window.start,
            Media.uploaded_at <= window.end,
        )
    )
    viewed = [
        m
        for m in result.scalars().all()
        if any(v["student_id"] == student_id for v in m.views or [])
    ]
    classes = await load_classes(db, (m.class_id for m in viewed))
    return media_consumption(viewed, student_id, classes)


async def recent_submissions(
    db: AsyncSession,
    student_id: int,
    class_ids: Iterable[int],
    window: DateRange,
    limit: int = 5,
) -> list[tuple[Assignment, dict]]:
    """Most recent submissions by the student inside the window, from the given classes."""
    ids = list(class_ids)
    if not ids:
        return []
    result = await db.execute(select(Assignment).where(Assignment.class_id.in_(ids)))
    rows = []
    for assignment in result.scalars().all():
        sub = assignment.submission_for(student_id)
        if sub is None or not sub.get("submitted_at"):
            continue
        submitted_at = parse_timestamp(sub["submitted_at"])
        if as_utc(window.start) <= submitted_at <= as_utc(window.end):
            rows.append((submitted_at, assignment, sub))

    rows.sort(key=lambda row: row[0], reverse=True)
    return [(assignment, sub) for _, assignment, sub in rows[:limit]]


async def class_engagement(
    db: AsyncSession, class_id: int, window: DateRange
) -> list[StudentEngagement]:
    practices = await fetch_practices(db, window, class_id=class_id)
    users = await load_users(db, (p.student_id for p in practices))
    logger.debug(
        "Class %s engagement: %d practices from %d students",
        class_id, len(practices), len(users),
    )
    return student_engagement(practices, users)


async def class_media_stats(
    db: AsyncSession, class_id: int, window: DateRange
) -> list[MediaTypeStats]:
    result = await db.execute(
        select(Media).where(
            Media.class_id == class_id,
            Media.uploaded_at >= window.start,
            Media.uploaded_at <= window.end,
        )
    )
    return media_type_stats(result.scalars().all())


async def class_assignment_summary(
    db: AsyncSession, class_id: int, window: DateRange
) -> ClassAssignmentStats:
    result = await db.execute(
        select(Assignment).where(
            Assignment.class_id == class_id,
            Assignment.created_at >= window.start,
            Assignment.created_at <= window.end,
        )
    )
    return class_assignment_stats(result.scalars().all())
