"""Tests for the aggregation layer: pure reducers and store-backed rollups."""

from datetime import datetime, timedelta, timezone

from edutrack.models.assignment import Assignment
from edutrack.models.classroom import Classroom
from edutrack.models.media import Media
from edutrack.models.practice import PracticeSession
from edutrack.models.user import User
from edutrack.services import analytics
from edutrack.services.analytics import StudentEngagement
from edutrack.services.periods import DateRange

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


def practice(student_id=1, type="writing", category="word", accuracy=0, score=0,
             time_spent=0, completed=False, date=NOW, class_id=None):
    return PracticeSession(
        student_id=student_id,
        type=type,
        category=category,
        content="x",
        accuracy=accuracy,
        score=score,
        time_spent=time_spent,
        is_completed=completed,
        is_active=True,
        date=date,
        class_id=class_id,
    )


class TestPracticeGroups:
    def test_group_by_type(self):
        stats = analytics.group_practice_stats([
            practice(type="writing", accuracy=80, score=8, time_spent=60, completed=True),
            practice(type="writing", accuracy=60, score=6, time_spent=30),
            practice(type="typing", accuracy=90, score=9, time_spent=10, completed=True),
        ])
        assert [s.key for s in stats] == ["typing", "writing"]
        writing = stats[1]
        assert writing.total_practices == 2
        assert writing.average_accuracy == 70
        assert writing.average_score == 7
        assert writing.total_time_spent == 90
        assert writing.completed_practices == 1

    def test_group_by_category_busiest_first(self):
        stats = analytics.group_practice_stats(
            [practice(category="math"), practice(category="word"), practice(category="word")],
            by="category",
        )
        assert [(s.key, s.total_practices) for s in stats] == [("word", 2), ("math", 1)]

    def test_empty(self):
        assert analytics.group_practice_stats([]) == []


def test_daily_activity_sorted_by_day():
    buckets = analytics.daily_activity([
        practice(date=NOW, accuracy=50, time_spent=5),
        practice(date=NOW - timedelta(days=1), accuracy=100, time_spent=10),
        practice(date=NOW, accuracy=70, time_spent=5),
    ])
    assert [(b.month, b.day, b.practices) for b in buckets] == [(3, 17, 1), (3, 18, 2)]
    assert buckets[1].average_accuracy == 60
    assert buckets[1].total_time == 10


def test_weekly_trends_use_iso_weeks():
    # 2026-03-16 is a Monday: the 15th and the 16th fall in different ISO weeks
    trends = analytics.weekly_trends([
        practice(date=datetime(2026, 3, 15, tzinfo=timezone.utc), accuracy=40),
        practice(date=datetime(2026, 3, 16, tzinfo=timezone.utc), accuracy=60),
        practice(date=datetime(2026, 3, 18, tzinfo=timezone.utc), accuracy=80),
    ])
    assert [(t.week, t.total_practices) for t in trends] == [(11, 1), (12, 2)]
    assert trends[1].average_accuracy == 70


def test_assignment_performance_per_class():
    classes = {1: Classroom(id=1, name="Math", subject="Math")}
    assignments = [
        Assignment(class_id=1, total_points=10, submissions=[{"student_id": 7, "score": 8, "percentage": 80}]),
        Assignment(class_id=1, total_points=10, submissions=[{"student_id": 7, "score": 4, "percentage": 40}]),
        Assignment(class_id=1, total_points=10, submissions=[{"student_id": 8, "score": 10, "percentage": 100}]),
        # class no longer exists
        Assignment(class_id=2, total_points=5, submissions=[{"student_id": 7, "score": 5, "percentage": 100}]),
    ]
    [perf] = analytics.assignment_performance(assignments, 7, classes)
    assert perf.class_name == "Math"
    assert perf.total_assignments == 2
    assert perf.average_percentage == 60
    assert perf.total_points == 20
    assert perf.earned_points == 12


def test_media_consumption_per_class():
    classes = {1: Classroom(id=1, name="Science", subject="Science")}
    media = [
        Media(class_id=1, views=[{"student_id": 7, "percentage": 100}, {"student_id": 8, "percentage": 10}]),
        Media(class_id=1, views=[{"student_id": 7, "percentage": 50}]),
        Media(class_id=1, views=[{"student_id": 8, "percentage": 50}]),
    ]
    [row] = analytics.media_consumption(media, 7, classes)
    assert row.total_videos == 2
    assert row.average_watch_percentage == 75
    assert row.total_watch_time == 150


class TestEngagement:
    def test_student_engagement_sorted_and_resolved(self):
        users = {
            1: User(id=1, name="A", email="a@example.com"),
            2: User(id=2, name="B", email="b@example.com"),
        }
        rows = analytics.student_engagement(
            [practice(student_id=1), practice(student_id=2), practice(student_id=2), practice(student_id=3)],
            users,
        )
        assert [(r.student_id, r.total_practices) for r in rows] == [(2, 2), (1, 1)]
        assert rows[0].student_email == "b@example.com"

    def test_struggling_includes_low_activity(self):
        engagement = [
            StudentEngagement(student_id=i, total_practices=n, average_accuracy=95)
            for i, n in enumerate([10, 2, 8, 1])
        ]
        struggling = analytics.struggling_students(engagement)
        assert [s.total_practices for s in struggling] == [2, 1]

    def test_struggling_includes_low_accuracy_and_overlaps_top(self):
        engagement = [StudentEngagement(student_id=1, total_practices=10, average_accuracy=40)]
        assert analytics.top_performers(engagement) == engagement
        assert analytics.struggling_students(engagement) == engagement

    def test_lists_capped_at_five(self):
        engagement = [StudentEngagement(student_id=i, total_practices=1) for i in range(8)]
        assert len(analytics.top_performers(engagement)) == 5
        assert len(analytics.struggling_students(engagement)) == 5


def test_media_type_stats_skip_unviewed_items_in_mean():
    stats = analytics.media_type_stats([
        Media(type="video", views=[{"student_id": 1, "percentage": 100}, {"student_id": 2, "percentage": 50}]),
        Media(type="video", views=[]),
        Media(type="image", views=[{"student_id": 1, "percentage": 20}]),
    ])
    assert [(s.type, s.count, s.total_views) for s in stats] == [("image", 1, 1), ("video", 2, 2)]
    assert stats[1].average_watch_percentage == 75


def test_class_assignment_stats_mean_of_means():
    stats = analytics.class_assignment_stats([
        Assignment(submissions=[{"score": 10, "percentage": 100}, {"score": 0, "percentage": 0}]),
        Assignment(submissions=[{"score": 4, "percentage": 40}]),
        Assignment(submissions=[]),
    ])
    assert stats.total_assignments == 3
    assert stats.total_submissions == 3
    assert stats.average_score == 4.5
    assert stats.average_percentage == 45


def test_class_assignment_stats_empty():
    stats = analytics.class_assignment_stats([])
    assert stats.total_assignments == 0
    assert stats.average_percentage == 0


# ---------------------------------------------------------------------------
# Store-backed rollups
# ---------------------------------------------------------------------------


async def test_fetch_practices_excludes_inactive_and_out_of_window(db_session, student):
    inside = practice(student_id=student.id, date=NOW - timedelta(days=2))
    hidden = practice(student_id=student.id, date=NOW - timedelta(days=1))
    hidden.is_active = False
    outside = practice(student_id=student.id, date=NOW - timedelta(days=40))
    db_session.add_all([inside, hidden, outside])
    await db_session.commit()

    window = DateRange(NOW - timedelta(days=30), NOW)
    rows = await analytics.fetch_practices(db_session, window, student_id=student.id)
    assert [p.id for p in rows] == [inside.id]


async def test_class_engagement_from_store(db_session, classroom, student):
    db_session.add_all([
        practice(student_id=student.id, class_id=classroom.id, accuracy=90, date=NOW - timedelta(days=1)),
        practice(student_id=student.id, class_id=classroom.id, accuracy=70, date=NOW - timedelta(days=2)),
        practice(student_id=student.id, class_id=None, accuracy=10, date=NOW - timedelta(days=2)),
    ])
    await db_session.commit()

    window = DateRange(NOW - timedelta(days=30), NOW)
    [row] = await analytics.class_engagement(db_session, classroom.id, window)
    assert row.student_name == student.name
    assert row.total_practices == 2
    assert row.average_accuracy == 80


async def test_recent_submissions_limited_to_given_classes(db_session, classroom, teacher, student):
    other = Classroom(name="Art", subject="Art", teacher_id=teacher.id, students=[], class_code="ART001")
    db_session.add(other)
    await db_session.commit()

    def quiz(class_id: int, hours_ago: int) -> Assignment:
        submitted = {
            "student_id": student.id, "answers": [], "score": 1, "percentage": 100,
            "submitted_at": (NOW - timedelta(hours=hours_ago)).isoformat(),
        }
        return Assignment(
            title=f"Quiz {class_id}", class_id=class_id, created_by=teacher.id,
            due_date=NOW, questions=[], submissions=[submitted],
        )

    mine, elsewhere = quiz(classroom.id, 2), quiz(other.id, 1)
    db_session.add_all([mine, elsewhere])
    await db_session.commit()

    window = DateRange(NOW - timedelta(days=30), NOW)
    rows = await analytics.recent_submissions(db_session, student.id, [classroom.id], window)
    assert [a.id for a, _ in rows] == [mine.id]
    assert await analytics.recent_submissions(db_session, student.id, [], window) == []
