"""Expand a repeat option into concrete occurrence dates.

Pure functions only: no storage, no clock. The create-with-repeat flow calls
``generate_occurrences`` once and persists one event per returned date.

Bounds:
    - ``count``: stop after that many occurrences.
    - ``until``: stop after that date (inclusive).
    - neither: stop at the academic-year boundary, the next January 15th
      strictly after the start date, and after ``DEFAULT_MAX_COUNT`` dates.

Whatever the bound, no more than ``SAFETY_CAP`` dates are produced and no
loop walks past a fixed horizon.
"""
from datetime import date, timedelta

SAFETY_CAP = 365
DEFAULT_MAX_COUNT = 40
MAX_INTERVAL_WEEKS = 52

BIWEEKLY_LEGACY = "every-2-3-4"

RECURRENCE_OPTIONS = [
    {"value": "weekly", "label": "Every week"},
    {"value": "every-week", "label": "Every week (legacy)"},
    {"value": BIWEEKLY_LEGACY, "label": "Every two weeks"},
]


def academic_year_boundary(start: date) -> date:
    """The next January 15th strictly after ``start``."""
    boundary = date(start.year, 1, 15)
    if boundary <= start:
        boundary = date(start.year + 1, 1, 15)
    return boundary


def js_weekday(day: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def normalize_by_days(by_days) -> list[int] | None:
    """Keep valid weekday indices (0..6), sorted and unique; None if empty."""
    if not by_days:
        return None
    days = set()
    for value in by_days:
        try:
            day = int(value)
        except (TypeError, ValueError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return sorted(days) or None


def normalize_interval(interval_weeks) -> int:
    try:
        interval = int(interval_weeks)
    except (TypeError, ValueError):
        return 1
    return min(max(interval, 1), MAX_INTERVAL_WEEKS)


def resolve_bound(
    start: date,
    count: int | None = None,
    until: date | None = None,
    interval_weeks: int = 1,
) -> tuple[date, int]:
    """
    Work out the last includable date and the maximum number of dates.

    An explicit count or until replaces the implicit January 15th boundary.
    Without an explicit until, a count-only bound still gets a horizon far
    enough out for ``SAFETY_CAP`` occurrences at the widest stepping.
    """
    if count is not None and count > 0:
        max_count = min(count, SAFETY_CAP)
    elif until is not None:
        max_count = SAFETY_CAP
    else:
        max_count = DEFAULT_MAX_COUNT

    if until is not None:
        return until, max_count
    if count is not None and count > 0:
        horizon = timedelta(weeks=2 * SAFETY_CAP * interval_weeks)
        return start + horizon, max_count
    return academic_year_boundary(start), max_count


def generate_occurrences(
    start: date,
    repeat_option: str | None = None,
    by_days=None,
    interval_weeks=1,
    count: int | None = None,
    until: date | None = None,
) -> list[date]:
    """
    Expand a recurrence into an ordered list of dates.

    Args:
        start: First occurrence date.
        repeat_option: Recurrence tag. "every-2-3-4" steps by 14 days; any
            other value (or None) uses weekly stepping.
        by_days: Weekday indices (0=Sunday) to pick within each window of
            ``interval_weeks`` weeks. Overrides simple weekly stepping.
        interval_weeks: Weeks between repeats, clamped to 1..52.
        count: Maximum number of occurrences.
        until: Last includable date.

    Returns:
        Strictly increasing dates, each >= start and <= the bound.
    """
    interval = normalize_interval(interval_weeks)
    bound, max_count = resolve_bound(start, count, until, interval)
    days = normalize_by_days(by_days)

    out: list[date] = []
    if bound < start:
        return out

    if repeat_option == BIWEEKLY_LEGACY:
        cursor = start
        while cursor <= bound and len(out) < max_count:
            out.append(cursor)
            cursor += timedelta(days=14)
        return out

    if days:
        cursor = start
        while cursor <= bound and len(out) < max_count:
            week_index = (cursor - start).days // 7
            if js_weekday(cursor) in days and week_index % interval == 0:
                out.append(cursor)
            cursor += timedelta(days=1)
        return out

    step = timedelta(days=7 * interval)
    cursor = start
    while cursor <= bound and len(out) < max_count:
        out.append(cursor)
        cursor += step
    return out
