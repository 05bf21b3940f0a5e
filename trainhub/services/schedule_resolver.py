# services/schedule_resolver.py
"""
Weekly pattern resolution.
Maps a group's recurring weekly pattern and the number of sessions already created
to the calendar slot of the next session. Pure functions; no database access.
"""

from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from trainhub.utils.time_utils import (
    minutes_between, validate_time_range, normalize_day, weekday_offset, week_start
)


class WeeklyPatternEntry(NamedTuple):
    """Plain weekly slot; GroupScheduleEntry rows expose the same attributes."""
    day: str
    start_time: str
    end_time: str
    location: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        """Build a validated entry from request data."""
        day = normalize_day(data.get('day'))
        start_time, end_time = validate_time_range(data.get('start_time'), data.get('end_time'))
        location = (data.get('location') or '').strip() or None
        return cls(day, start_time, end_time, location)


class ResolvedSlot(NamedTuple):
    date: object
    start_time: str
    end_time: str
    location: Optional[str] = None

    @property
    def duration_minutes(self):
        return minutes_between(self.start_time, self.end_time)


def pattern_position(sessions_already_created, pattern_length):
    """
    Round-robin position of the next occurrence.

    Returns:
        tuple: (pattern_index, week_offset)
    """
    if pattern_length <= 0:
        raise ValueError("pattern_length must be positive")
    if sessions_already_created < 0:
        raise ValueError("sessions_already_created cannot be negative")
    return (sessions_already_created % pattern_length,
            sessions_already_created // pattern_length)


def resolve_next_slot(weekly_pattern, sessions_already_created, now=None):
    """
    Resolve the calendar slot for the next session of a group.

    Entries are used in list order, one per session; each full pass over the
    pattern moves one week further from the week containing `now`. A candidate
    falling before today is pushed forward by exactly one week, once.

    Args:
        weekly_pattern: Ordered sequence of entries with day/start_time/end_time/location
        sessions_already_created: Sessions the group had before this one
        now: Reference datetime (defaults to datetime.now())

    Returns:
        ResolvedSlot, or None when the pattern is empty and the caller must
        supply the date manually
    """
    pattern = list(weekly_pattern or [])
    if not pattern:
        return None

    now = now or datetime.now()
    today = now.date() if isinstance(now, datetime) else now

    pattern_index, week_offset = pattern_position(sessions_already_created, len(pattern))
    entry = pattern[pattern_index]

    candidate = week_start(today) + timedelta(days=week_offset * 7 + weekday_offset(entry.day))
    if candidate < today:
        candidate += timedelta(days=7)

    return ResolvedSlot(candidate, entry.start_time, entry.end_time, getattr(entry, 'location', None))
