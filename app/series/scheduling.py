"""Scheduling rules applied before any event is created or rescheduled.

``MIN_SCHEDULE_OFFSET`` is the one place the minimum lead time lives. Event
creation, single updates and series updates all call ``validate_schedule``,
and the API publishes the same value to clients at ``/events/config``.
"""
import re
from datetime import date, datetime, time, timedelta

from app.core.config import settings
from app.core.errors import PastDateError, ScheduleOffsetError

MIN_SCHEDULE_OFFSET = timedelta(minutes=settings.min_schedule_offset_minutes)
MIN_SCHEDULE_OFFSET_LABEL = f"{settings.min_schedule_offset_minutes} minutes"

_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def normalize_time(value: str) -> str:
    """
    Canonical "HH:MM" form of a client-supplied time.

    Seconds are dropped so stored times compare exactly ("9:05:30" and
    "09:05" both become "09:05").

    Raises:
        ValueError: not a valid time of day, e.g. "noon" or "25:99".
    """
    match = _CLOCK.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2))).strftime("%H:%M")


def parse_time(value: str) -> time:
    """Parse "HH:MM" (seconds tolerated) into a time."""
    parts = str(value).strip().split(":")
    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return time(hour, minute)


def combine(day: date, value: str) -> datetime:
    """Local instant for a date plus an "HH:MM" time."""
    return datetime.combine(day, parse_time(value))


def check_not_past(day: date, today: date | None = None) -> None:
    """Reject dates before today (date-level check, no time of day)."""
    today = today or date.today()
    if day < today:
        raise PastDateError(f"Cannot schedule events before today ({today.isoformat()})")


def validate_schedule(day: date, value: str | None, now: datetime | None = None) -> None:
    """
    Reject timed events starting less than ``MIN_SCHEDULE_OFFSET`` from now.

    Date-only events (``value`` is None) are exempt.

    Raises:
        ScheduleOffsetError: when the combined date and time is too soon.
    """
    if not value:
        return

    now = now or datetime.now()
    if combine(day, value) < now + MIN_SCHEDULE_OFFSET:
        raise ScheduleOffsetError(
            f"Please schedule events at least {MIN_SCHEDULE_OFFSET_LABEL} from now."
        )
