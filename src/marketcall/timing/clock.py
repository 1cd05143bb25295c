"""Reference clock.

Record dates, the ranking's current day and the ranking week all use the
calendar of a fixed UTC+9 offset. Market closes are compared as UTC
instants.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

REFERENCE_TZ = timezone(timedelta(hours=9))


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(now: datetime | None) -> datetime:
    if now is None:
        return utc_now()
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now.astimezone(UTC)


def reference_today(now: datetime | None = None) -> date:
    """The calendar day new predictions are filed under."""
    return as_utc(now).astimezone(REFERENCE_TZ).date()


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def current_week_bounds(now: datetime | None = None) -> tuple[date, date]:
    return week_bounds(reference_today(now))
