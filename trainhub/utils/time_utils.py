# utils/time_utils.py
"""
Clock access and date/time parsing helpers shared by the scheduling services.
All datetimes are naive and expressed in the single operational timezone.
"""

import re
from datetime import datetime, date, timedelta

from flask import current_app, has_app_context

from trainhub.services.errors import ValidationError

TIME_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$')

# Sunday first, matching the calendar week used by the schedule resolver
WEEKDAYS = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']
_WEEKDAY_ALIASES = {name[:3].lower(): name for name in WEEKDAYS}
_WEEKDAY_ALIASES.update({name.lower(): name for name in WEEKDAYS})


def get_now():
    """Current wall-clock time, from app.config['CLOCK'] when one is configured."""
    if has_app_context():
        clock = current_app.config.get('CLOCK')
        if clock is not None:
            return clock()
    return datetime.now()


def parse_time(value, field='time'):
    """
    Parse a 24-hour 'HH:MM' string.

    Returns:
        tuple: (hours, minutes)
    """
    match = TIME_PATTERN.match(str(value).strip()) if value is not None else None
    if not match:
        raise ValidationError(f"{value!r} is not a valid time format! Use HH:MM", field=field)
    return int(match.group(1)), int(match.group(2))


def normalize_time(value, field='time'):
    """Return the zero-padded 'HH:MM' form of a valid time string."""
    hours, minutes = parse_time(value, field)
    return f"{hours:02d}:{minutes:02d}"


def to_minutes(value, field='time'):
    hours, minutes = parse_time(value, field)
    return hours * 60 + minutes


def minutes_between(start_time, end_time):
    """Duration in minutes between two 'HH:MM' strings on the same day."""
    return to_minutes(end_time, 'end_time') - to_minutes(start_time, 'start_time')


def validate_time_range(start_time, end_time):
    """Normalize both times and require end_time after start_time (no overnight slots)."""
    start = normalize_time(start_time, 'start_time')
    end = normalize_time(end_time, 'end_time')
    if to_minutes(end) <= to_minutes(start):
        raise ValidationError('End time must be after start time', field='end_time')
    return start, end


def normalize_day(value, field='day'):
    """Accept 'Monday', 'monday' or 'Mon' and return the capitalised full name."""
    name = _WEEKDAY_ALIASES.get(str(value or '').strip().lower())
    if not name:
        raise ValidationError(f"{value!r} is not a valid weekday", field=field)
    return name


def weekday_offset(day):
    """Days from Sunday to the given weekday (Sunday=0 .. Saturday=6)."""
    return WEEKDAYS.index(normalize_day(day))


def week_start(moment):
    """Most recent Sunday at or before `moment`, as a date."""
    day = moment.date() if isinstance(moment, datetime) else moment
    return day - timedelta(days=(day.weekday() + 1) % 7)


def parse_date(value, field='date'):
    """Parse an ISO date ('YYYY-MM-DD'); datetimes are truncated to their date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except (TypeError, ValueError):
        raise ValidationError(f"{value!r} is not a valid date. Use YYYY-MM-DD", field=field)


def round_half_up(value):
    """Round a non-negative number to the nearest integer, halves rounding up."""
    return int(value + 0.5)


def percentage(part, whole):
    """Integer percentage in [0, 100]; 0 when whole is 0."""
    if not whole:
        return 0
    return max(0, min(100, round_half_up(part * 100 / whole)))
