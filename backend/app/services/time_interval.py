"""Recurring weekly time windows and the overlap rule that defines a scheduling conflict.

A window is a day of the week (Monday=1 ... Sunday=7) plus a half-open time range
``[start, end)``. Two windows collide only when they fall on the same day and their
ranges intersect; windows that merely touch (``a.end == b.start``) do not collide, so
back-to-back periods are always allowed.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import time

from app.core.exceptions import ValidationError

MIN_DAY_OF_WEEK = 1
MAX_DAY_OF_WEEK = 7
MAX_PERIOD_MINUTES = 240

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


@dataclass(frozen=True)
class TimeInterval:
    day_of_week: int
    start: time
    end: time

    def __post_init__(self) -> None:
        if isinstance(self.day_of_week, bool) or not isinstance(self.day_of_week, int):
            raise ValidationError("dayOfWeek must be an integer", field="dayOfWeek")
        if not MIN_DAY_OF_WEEK <= self.day_of_week <= MAX_DAY_OF_WEEK:
            raise ValidationError(
                f"dayOfWeek must be between {MIN_DAY_OF_WEEK} and {MAX_DAY_OF_WEEK}, got {self.day_of_week}",
                field="dayOfWeek",
            )
        for field, value in (("startTime", self.start), ("endTime", self.end)):
            if value.second or value.microsecond:
                raise ValidationError(f"{field} must be a whole minute, got {value.isoformat()}", field=field)
        if self.start >= self.end:
            raise ValidationError(
                f"startTime {format_time(self.start)} must be before endTime {format_time(self.end)}",
                field="endTime",
            )

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    def label(self) -> str:
        return f"{self.day_name} {format_time(self.start)}-{format_time(self.end)}"

    def overlaps(self, other: TimeInterval) -> bool:
        return overlaps(self, other)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    if a.day_of_week != b.day_of_week:
        return False
    return a.start < b.end and b.start < a.end


def resolve_duration(interval: TimeInterval, declared: int | None) -> int:
    """Return the period length in minutes, checking a caller-declared value against the window."""
    actual = interval.duration_minutes
    if actual <= 0 or actual > MAX_PERIOD_MINUTES:
        raise ValidationError(
            f"Period length must be between 1 and {MAX_PERIOD_MINUTES} minutes, got {actual}",
            field="durationInMinutes",
        )
    if declared is None:
        return actual
    if declared <= 0 or declared > MAX_PERIOD_MINUTES:
        raise ValidationError(
            f"durationInMinutes must be between 1 and {MAX_PERIOD_MINUTES}, got {declared}",
            field="durationInMinutes",
        )
    if declared != actual:
        raise ValidationError(
            f"durationInMinutes ({declared}) does not match the window {interval.label()} ({actual} minutes)",
            field="durationInMinutes",
        )
    return actual
