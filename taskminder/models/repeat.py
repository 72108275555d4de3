"""Repeat pattern models.

Weekdays use calendar numbering: 1=Sunday, 2=Monday ... 7=Saturday.
"""

from typing import Annotated, FrozenSet, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Pattern(BaseModel):
    model_config = ConfigDict(frozen=True)


class DailyPattern(_Pattern):
    type: Literal["daily"] = "daily"


class WeeklyPattern(_Pattern):
    type: Literal["weekly"] = "weekly"


class MonthlyPattern(_Pattern):
    type: Literal["monthly"] = "monthly"


class YearlyPattern(_Pattern):
    type: Literal["yearly"] = "yearly"


class EveryNHoursPattern(_Pattern):
    type: Literal["everyNHours"] = "everyNHours"
    hours: int = Field(ge=1)


class EveryNDaysPattern(_Pattern):
    type: Literal["everyNDays"] = "everyNDays"
    days: int = Field(ge=1)


class NthWeekdayOfMonthPattern(_Pattern):
    """The `week`-th `weekday` of the month (week=1 is the first occurrence)."""

    type: Literal["nthWeekdayOfMonth"] = "nthWeekdayOfMonth"
    weekday: int = Field(ge=1, le=7)
    week: int = Field(ge=1, le=5)


class CustomPattern(_Pattern):
    """Repeat on a fixed set of weekdays."""

    type: Literal["custom"] = "custom"
    weekdays: FrozenSet[int]

    @field_validator("weekdays")
    @classmethod
    def _check_weekdays(cls, value: FrozenSet[int]) -> FrozenSet[int]:
        if not value:
            raise ValueError("custom pattern needs at least one weekday")
        if any(day < 1 or day > 7 for day in value):
            raise ValueError("weekdays must be between 1 (Sunday) and 7 (Saturday)")
        return value


RepeatPattern = Annotated[
    Union[
        DailyPattern,
        WeeklyPattern,
        MonthlyPattern,
        YearlyPattern,
        EveryNHoursPattern,
        EveryNDaysPattern,
        NthWeekdayOfMonthPattern,
        CustomPattern,
    ],
    Field(discriminator="type"),
]
