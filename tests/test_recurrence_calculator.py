from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from taskminder.errors import InvalidRepeatPattern
from taskminder.models.repeat import (
    CustomPattern,
    DailyPattern,
    EveryNDaysPattern,
    EveryNHoursPattern,
    MonthlyPattern,
    NthWeekdayOfMonthPattern,
    WeeklyPattern,
    YearlyPattern,
)
from taskminder.services.recurrence.calculator import calendar_weekday, next_occurrence

NEW_YORK = ZoneInfo("America/New_York")


def at(year, month, day, hour=9, minute=0, tz=timezone.utc):
    return datetime(year, month, day, hour, minute, tzinfo=tz)


def test_calendar_weekday_numbering():
    assert calendar_weekday(at(2025, 3, 16)) == 1  # Sunday
    assert calendar_weekday(at(2025, 3, 17)) == 2  # Monday
    assert calendar_weekday(at(2025, 3, 15)) == 7  # Saturday


@pytest.mark.parametrize(
    "pattern, anchor, expected",
    [
        (DailyPattern(), at(2025, 3, 15), at(2025, 3, 16)),
        (WeeklyPattern(), at(2025, 3, 15), at(2025, 3, 22)),
        (MonthlyPattern(), at(2025, 1, 31), at(2025, 2, 28)),
        (YearlyPattern(), at(2024, 2, 29), at(2025, 2, 28)),
        (EveryNDaysPattern(days=3), at(2025, 3, 30), at(2025, 4, 2)),
        (EveryNHoursPattern(hours=6), at(2025, 3, 15, 21), at(2025, 3, 16, 3)),
    ],
)
def test_simple_patterns(pattern, anchor, expected):
    assert next_occurrence(anchor, pattern) == expected


def test_daily_keeps_wall_clock_across_dst():
    result = next_occurrence(at(2025, 3, 8, 9, tz=NEW_YORK), DailyPattern())

    assert (result.hour, result.day) == (9, 9)
    assert result.utcoffset() != at(2025, 3, 8, 9, tz=NEW_YORK).utcoffset()


def test_every_n_hours_is_elapsed_time_across_dst():
    result = next_occurrence(at(2025, 3, 9, 0, tz=NEW_YORK), EveryNHoursPattern(hours=5))

    assert result.astimezone(timezone.utc) == at(2025, 3, 9, 10)
    assert result.hour == 6


def test_nth_weekday_always_uses_next_month():
    # first Monday, anchored mid March
    pattern = NthWeekdayOfMonthPattern(weekday=2, week=1)

    assert next_occurrence(at(2025, 3, 15), pattern) == at(2025, 4, 7)
    assert next_occurrence(at(2025, 3, 1), pattern) == at(2025, 4, 7)


def test_nth_weekday_fifth_week_falls_back_to_last():
    pattern = NthWeekdayOfMonthPattern(weekday=2, week=5)

    assert next_occurrence(at(2025, 1, 10), pattern) == at(2025, 2, 24)
    assert next_occurrence(at(2025, 2, 10), pattern) == at(2025, 3, 31)


def test_custom_weekdays():
    # Monday and Wednesday
    pattern = CustomPattern(weekdays=frozenset({2, 4}))

    assert next_occurrence(at(2025, 3, 17), pattern) == at(2025, 3, 19)
    assert next_occurrence(at(2025, 3, 19), pattern) == at(2025, 3, 24)
    assert next_occurrence(at(2025, 3, 15), pattern) == at(2025, 3, 17)


def test_custom_same_weekday_moves_a_full_week():
    assert next_occurrence(at(2025, 3, 17), CustomPattern(weekdays=frozenset({2}))) == at(2025, 3, 24)


@pytest.mark.parametrize("weekdays", [set(), {0}, {8}])
def test_custom_pattern_rejects_bad_weekdays(weekdays):
    with pytest.raises(ValidationError):
        CustomPattern(weekdays=weekdays)


def test_unknown_pattern_raises():
    with pytest.raises(InvalidRepeatPattern):
        next_occurrence(at(2025, 3, 15), object())
