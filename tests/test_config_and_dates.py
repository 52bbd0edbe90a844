import datetime

import pytest

from habit_tracker.core import db
from habit_tracker.core.config import get_max_routines, get_timer_interval
from habit_tracker.services.date_service import date_range, parse_date, sunday_based_weekday, weekday_token


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("5", 5), ("0", 1), ("50", 20), ("lots", 5)],
)
def test_max_routines_env_is_clamped(monkeypatch, raw, expected):
    monkeypatch.setenv("HABIT_TRACKER_MAX_ROUTINES", raw)
    assert get_max_routines() == expected


def test_timer_interval_defaults_and_clamps(monkeypatch):
    monkeypatch.delenv("HABIT_TRACKER_TIMER_INTERVAL", raising=False)
    assert get_timer_interval() == 1.0
    monkeypatch.setenv("HABIT_TRACKER_TIMER_INTERVAL", "0.001")
    assert get_timer_interval() == 0.1


def test_database_url_normalization():
    assert db._normalize_database_url("postgres://a:b@h/d") == "postgresql+psycopg2://a:b@h/d"
    assert db._normalize_database_url("sqlite:///habits.db") == "sqlite:///habits.db"
    with pytest.raises(ValueError):
        db._normalize_database_url("mysql://a@h/d")


def test_parse_date_accepts_iso_and_datetimes():
    assert parse_date("2026-03-04") == datetime.date(2026, 3, 4)
    assert parse_date(datetime.datetime(2026, 3, 4, 23, 59)) == datetime.date(2026, 3, 4)
    with pytest.raises(ValueError):
        parse_date("not-a-date")


def test_weekday_helpers():
    assert weekday_token("2026-03-04") == "wednesday"
    assert sunday_based_weekday("2026-03-01") == 0
    assert [day.day for day in date_range("2026-02-27", "2026-03-02")] == [27, 28, 1, 2]
