"""Unit tests for statistics date windows."""

from datetime import datetime, timedelta, timezone

from edutrack.services.periods import (
    analytics_window,
    as_utc,
    parse_timestamp,
    practice_stats_window,
    report_window,
)

NOW = datetime(2026, 3, 18, 15, 30, tzinfo=timezone.utc)


def test_practice_month_is_calendar_month():
    window = practice_stats_window("month", NOW)
    assert window.start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert window.end == NOW


def test_practice_day_and_year():
    assert practice_stats_window("day", NOW).start == datetime(2026, 3, 18, tzinfo=timezone.utc)
    assert practice_stats_window("year", NOW).start == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_practice_defaults_to_rolling_week():
    assert practice_stats_window(None, NOW).start == NOW - timedelta(days=7)
    assert practice_stats_window("bogus", NOW).start == NOW - timedelta(days=7)


def test_report_month_is_rolling_thirty_days():
    assert report_window("month", NOW).start == NOW - timedelta(days=30)
    assert report_window(None, NOW).start == NOW - timedelta(days=30)


def test_report_quarter_and_year():
    assert report_window("quarter", NOW).start == NOW - timedelta(days=90)
    assert report_window("year", NOW).start == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_analytics_has_no_calendar_year():
    assert analytics_window("year", NOW).start == NOW - timedelta(days=30)
    assert analytics_window("week", NOW).start == NOW - timedelta(days=7)


def test_naive_values_are_treated_as_utc():
    naive = datetime(2026, 3, 18, 15, 30)
    assert as_utc(naive) == NOW
    assert parse_timestamp("2026-03-18T15:30:00") == NOW
    assert parse_timestamp(NOW.isoformat()) == NOW
    assert parse_timestamp(None) is None
