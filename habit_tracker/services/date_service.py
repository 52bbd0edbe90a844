"""Calendar-date helpers for daily record keys."""

from __future__ import annotations

import datetime
from typing import Any, Callable

from dateutil import parser as date_parser

Clock = Callable[[], datetime.datetime]

_WEEKDAY_TOKENS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            try:
                return date_parser.parse(value).date()
            except (ValueError, TypeError, OverflowError) as exc:
                raise ValueError(f"Invalid date: {value!r}") from exc
    raise ValueError(f"Invalid date: {value!r}")


def date_key(value: Any) -> str:
    # 日本語: 日次レコードのキーは端末ローカルの YYYY-MM-DD / English: Daily records are keyed by local YYYY-MM-DD
    return parse_date(value).isoformat()


def today_key(clock: Clock) -> str:
    return clock().date().isoformat()


def weekday_token(value: Any) -> str:
    return _WEEKDAY_TOKENS[parse_date(value).weekday()]


def sunday_based_weekday(value: Any) -> int:
    """Weekday index with Sunday as 0, as used for daily challenge rotation."""
    return (parse_date(value).weekday() + 1) % 7


def date_range(start: Any, end: Any) -> list[datetime.date]:
    start_date = parse_date(start)
    end_date = parse_date(end)
    days = []
    current = start_date
    while current <= end_date:
        days.append(current)
        current += datetime.timedelta(days=1)
    return days


__all__ = [
    "Clock",
    "parse_date",
    "date_key",
    "today_key",
    "weekday_token",
    "sunday_based_weekday",
    "date_range",
]
