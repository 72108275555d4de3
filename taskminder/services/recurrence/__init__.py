"""Recurrence calculation and instance generation."""

from .calculator import calendar_weekday, next_occurrence
from .generator import RecurrenceGenerator, build_instance

__all__ = ["RecurrenceGenerator", "build_instance", "calendar_weekday", "next_occurrence"]
