"""Recurrence calculator - next occurrence of a repeat pattern."""

from datetime import datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

from ...errors import InvalidRepeatPattern
from ...models.repeat import (
    CustomPattern,
    DailyPattern,
    EveryNDaysPattern,
    EveryNHoursPattern,
    MonthlyPattern,
    NthWeekdayOfMonthPattern,
    RepeatPattern,
    WeeklyPattern,
    YearlyPattern,
)

CUSTOM_SCAN_DAYS = 14


def calendar_weekday(value: datetime) -> int:
    """Weekday as 1=Sunday ... 7=Saturday."""
    return (value.weekday() + 1) % 7 + 1


def next_occurrence(anchor: datetime, pattern: RepeatPattern) -> datetime:
    """Return the occurrence following ``anchor``.

    Calendar units are added on the anchor's wall clock, so pass the anchor in
    the user's local timezone. Hour steps are exact elapsed time.
    """
    if isinstance(pattern, DailyPattern):
        return anchor + timedelta(days=1)
    if isinstance(pattern, WeeklyPattern):
        return anchor + timedelta(weeks=1)
    if isinstance(pattern, MonthlyPattern):
        return anchor + relativedelta(months=1)
    if isinstance(pattern, YearlyPattern):
        return anchor + relativedelta(years=1)
    if isinstance(pattern, EveryNHoursPattern):
        if anchor.tzinfo is None:
            return anchor + timedelta(hours=pattern.hours)
        shifted = anchor.astimezone(timezone.utc) + timedelta(hours=pattern.hours)
        return shifted.astimezone(anchor.tzinfo)
    if isinstance(pattern, EveryNDaysPattern):
        return anchor + timedelta(days=pattern.days)
    if isinstance(pattern, NthWeekdayOfMonthPattern):
        return nth_weekday_of_next_month(anchor, pattern.weekday, pattern.week)
    if isinstance(pattern, CustomPattern):
        return next_custom_day(anchor, pattern.weekdays)
    raise InvalidRepeatPattern(f"Unsupported repeat pattern: {pattern!r}")


def nth_weekday_of_next_month(anchor: datetime, weekday: int, week: int) -> datetime:
    """The ``week``-th ``weekday`` of the month after the anchor's month.

    Always looks at the next month, even when this month's occurrence is still
    ahead. A fifth week that does not exist falls back to the last occurrence.
    """
    first_day = anchor.replace(day=1) + relativedelta(months=1)
    days_to_add = (weekday - calendar_weekday(first_day) + 7) % 7 + (week - 1) * 7
    result = first_day + timedelta(days=days_to_add)
    while result.month != first_day.month:
        result -= timedelta(weeks=1)
    return result


def next_custom_day(anchor: datetime, weekdays) -> datetime:
    """First day after the anchor whose weekday is in ``weekdays``."""
    for offset in range(1, CUSTOM_SCAN_DAYS + 1):
        candidate = anchor + timedelta(days=offset)
        if calendar_weekday(candidate) in weekdays:
            return candidate
    raise InvalidRepeatPattern(
        f"No matching weekday within {CUSTOM_SCAN_DAYS} days for custom pattern {sorted(weekdays)}"
    )
