"""
Half-open time ranges used by spot allocation.

A ``TimeRange`` is ``[start, end)``: it includes its start instant and
excludes its end instant, so a booking ending at 11:00 never collides with one
starting at 11:00. All instants are UTC; naive datetimes are taken to be UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import math
from typing import List, Optional

from ..core.exceptions import ValidationException


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start is None or self.end is None:
            raise ValidationException(
                "Please provide start time and end time", code="MISSING_TIME_RANGE"
            )
        start = ensure_utc(self.start)
        end = ensure_utc(self.end)
        if start >= end:
            raise ValidationException(
                "End time must be after start time",
                code="INVALID_TIME_RANGE",
                details={"start_time": start.isoformat(), "end_time": end.isoformat()},
            )
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def from_optional(cls, start: Optional[datetime], end: Optional[datetime]) -> "TimeRange":
        """Build a range from request values that may be missing."""
        if start is None or end is None:
            raise ValidationException(
                "Please provide start time and end time", code="MISSING_TIME_RANGE"
            )
        return cls(start, end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def billable_hours(self) -> int:
        """Whole hours charged for the range; partial hours round up."""
        return max(1, math.ceil(self.duration.total_seconds() / 3600))

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """Half-open overlap predicate: ``a.start < b.end and b.start < a.end``."""
    return a.overlaps(b)


def day_range(day: date) -> TimeRange:
    """The UTC calendar day ``[00:00, next 00:00)``."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return TimeRange(start, start + timedelta(days=1))


def hourly_slots(window: TimeRange) -> List[TimeRange]:
    """Consecutive one-hour ranges from the window's start; a short tail is clipped."""
    slots: List[TimeRange] = []
    cursor = window.start
    while cursor < window.end:
        slot_end = min(cursor + timedelta(hours=1), window.end)
        slots.append(TimeRange(cursor, slot_end))
        cursor = slot_end
    return slots


def month_windows(now: datetime, months: int) -> List[TimeRange]:
    """
    The last ``months`` UTC calendar months, oldest first.

    The final window is the month containing ``now``.
    """
    now = ensure_utc(now)
    year, month = now.year, now.month
    windows: List[TimeRange] = []
    for _ in range(months):
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        next_year, next_month = (year + 1, 1) if month == 12 else (year, month + 1)
        windows.append(TimeRange(start, datetime(next_year, next_month, 1, tzinfo=timezone.utc)))
        year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    windows.reverse()
    return windows
