"""Tests for occurrence generation."""

from datetime import date, timedelta

import pytest

from app.series.occurrences import (
    DEFAULT_MAX_COUNT,
    SAFETY_CAP,
    academic_year_boundary,
    generate_occurrences,
    js_weekday,
    normalize_by_days,
    normalize_interval,
)

MONDAY = date(2025, 1, 6)


class TestByDays:
    """Tests for weekday selection within interval windows."""

    def test_monday_wednesday_pairs(self):
        """Mon/Wed in consecutive weeks."""
        dates = generate_occurrences(MONDAY, "weekly", by_days=[1, 3], interval_weeks=1, count=4)
        assert dates == [date(2025, 1, 6), date(2025, 1, 8), date(2025, 1, 13), date(2025, 1, 15)]

    def test_every_other_monday(self):
        """intervalWeeks=2 skips every second week."""
        dates = generate_occurrences(MONDAY, "weekly", by_days=[1], interval_weeks=2, count=3)
        assert dates == [date(2025, 1, 6), date(2025, 1, 20), date(2025, 2, 3)]

    def test_weekday_before_start_is_skipped_in_first_week(self):
        """A Sunday in by_days starts from the first Sunday after a Monday start."""
        dates = generate_occurrences(MONDAY, "weekly", by_days=[0], count=2)
        assert dates == [date(2025, 1, 12), date(2025, 1, 19)]

    def test_invalid_days_are_ignored(self):
        """Out-of-range and non-numeric weekdays are dropped."""
        assert normalize_by_days([3, 9, -1, "x", 1, 3]) == [1, 3]
        assert normalize_by_days([7, 8]) is None
        assert normalize_by_days(None) is None


class TestStepping:
    """Tests for weekly and biweekly stepping."""

    def test_weekly_default(self):
        dates = generate_occurrences(MONDAY, "weekly", count=3)
        assert dates == [date(2025, 1, 6), date(2025, 1, 13), date(2025, 1, 20)]

    def test_weekly_with_interval(self):
        dates = generate_occurrences(MONDAY, "weekly", interval_weeks=3, count=3)
        assert dates == [date(2025, 1, 6), date(2025, 1, 27), date(2025, 2, 17)]

    def test_biweekly_legacy_option(self):
        """every-2-3-4 steps 14 days regardless of interval_weeks."""
        dates = generate_occurrences(MONDAY, "every-2-3-4", interval_weeks=5, count=3)
        assert dates == [date(2025, 1, 6), date(2025, 1, 20), date(2025, 2, 3)]

    def test_interval_is_clamped(self):
        assert normalize_interval(0) == 1
        assert normalize_interval(-4) == 1
        assert normalize_interval(500) == 52
        assert normalize_interval("3") == 3
        assert normalize_interval(None) == 1


class TestBounds:
    """Tests for count, until and the implicit academic-year boundary."""

    def test_implicit_boundary_is_next_january_15(self):
        assert academic_year_boundary(date(2025, 9, 1)) == date(2026, 1, 15)
        assert academic_year_boundary(date(2025, 1, 10)) == date(2025, 1, 15)

    def test_boundary_rolls_forward_when_start_is_on_or_after_it(self):
        """The start date itself is always includable."""
        assert academic_year_boundary(date(2025, 1, 15)) == date(2026, 1, 15)
        dates = generate_occurrences(date(2025, 1, 15), "weekly")
        assert dates[0] == date(2025, 1, 15)

    def test_implicit_boundary_stops_generation(self):
        dates = generate_occurrences(date(2025, 12, 1), "weekly")
        assert dates[-1] <= date(2026, 1, 15)
        assert dates == [date(2025, 12, 1) + timedelta(weeks=i) for i in range(7)]

    def test_implicit_boundary_applies_default_max_count(self):
        """A daily walk across a full term is cut at the default max count."""
        dates = generate_occurrences(date(2025, 2, 1), "weekly", by_days=list(range(7)))
        assert len(dates) == DEFAULT_MAX_COUNT

    def test_until_is_inclusive(self):
        dates = generate_occurrences(MONDAY, "weekly", until=date(2025, 1, 20))
        assert dates == [date(2025, 1, 6), date(2025, 1, 13), date(2025, 1, 20)]

    def test_until_replaces_implicit_boundary(self):
        dates = generate_occurrences(date(2025, 12, 1), "weekly", until=date(2026, 3, 1))
        assert dates[-1] == date(2026, 2, 23)

    def test_until_before_start_yields_nothing(self):
        assert generate_occurrences(MONDAY, "weekly", until=date(2025, 1, 1)) == []

    def test_count_is_capped(self):
        dates = generate_occurrences(MONDAY, "weekly", count=10_000)
        assert len(dates) == SAFETY_CAP

    def test_until_is_capped(self):
        dates = generate_occurrences(MONDAY, "weekly", by_days=list(range(7)), until=date(2030, 1, 1))
        assert len(dates) == SAFETY_CAP


@pytest.mark.parametrize(
    "kwargs",
    [
        {"repeat_option": "weekly"},
        {"repeat_option": "every-2-3-4", "count": 12},
        {"repeat_option": "weekly", "by_days": [1, 4], "interval_weeks": 2},
        {"repeat_option": "weekly", "by_days": [5], "until": date(2025, 6, 30)},
        {"repeat_option": "weekly", "interval_weeks": 4, "count": 50},
    ],
)
def test_generator_boundedness(kwargs):
    """Every date is >= start, strictly increasing and within the cap."""
    dates = generate_occurrences(MONDAY, **kwargs)
    assert all(d >= MONDAY for d in dates)
    assert all(a < b for a, b in zip(dates, dates[1:]))
    assert len(dates) <= SAFETY_CAP
    if "until" in kwargs:
        assert all(d <= kwargs["until"] for d in dates)
    if "count" in kwargs:
        assert len(dates) <= kwargs["count"]


def test_js_weekday_is_sunday_based():
    assert js_weekday(date(2025, 1, 5)) == 0  # Sunday
    assert js_weekday(MONDAY) == 1
    assert js_weekday(date(2025, 1, 11)) == 6  # Saturday
