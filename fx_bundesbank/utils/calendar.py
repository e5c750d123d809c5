"""Date and schedule helpers used by the query service and the scheduler."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

WEEKDAYS = frozenset(range(5))


def parse_date(value: str | date) -> date:
    """Parse a date string in ISO format to :class:`date`."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def parse_time(value: str | time) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into :class:`time`."""

    if isinstance(value, time):
        return value
    cleaned = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")


def next_daily_run(now: datetime, at: time) -> datetime:
    """Return the first moment strictly after ``now`` that falls on ``at``."""

    candidate = datetime.combine(now.date(), at, tzinfo=now.tzinfo)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def next_weekday_run(now: datetime, at: time) -> datetime:
    """Like :func:`next_daily_run` but skips Saturdays and Sundays."""

    candidate = next_daily_run(now, at)
    while candidate.weekday() not in WEEKDAYS:
        candidate += timedelta(days=1)
    return candidate


__all__ = ["WEEKDAYS", "next_daily_run", "next_weekday_run", "parse_date", "parse_time"]
