# swim_makeup/utils/clock.py
"""
School-local wall clock.

Lesson times are entered by staff as local date + HH:MM, so every timestamp
in the database is a naive datetime in SCHOOL_TIMEZONE. Comparisons never mix
aware and naive values.
"""
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from swim_makeup.core.config import settings


def school_now() -> datetime:
    """Current naive wall-clock time at the school."""
    return datetime.now(ZoneInfo(settings.SCHOOL_TIMEZONE)).replace(tzinfo=None)


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' into a time. Raises ValueError on anything else."""
    hours, minutes = value.split(":")
    if len(hours) != 2 or len(minutes) != 2:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return time(int(hours), int(minutes))


def lesson_start(lesson_date: date, start_time: str) -> datetime:
    return datetime.combine(lesson_date, parse_hhmm(start_time))


def makeup_deadline(absent_date: date, window_days: int) -> datetime:
    """Last moment a makeup may still be arranged for an absence."""
    return datetime.combine(absent_date + timedelta(days=window_days), time.max)


def close_window_opens_at(lesson_start_at: datetime) -> datetime:
    """Waitlists for a lesson close this long before it starts."""
    return lesson_start_at - timedelta(minutes=settings.WAITLIST_CLOSE_LEAD_MINUTES)
