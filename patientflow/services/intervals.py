"""
Half-open time-of-day intervals within a single calendar day.

``[start, end)``: the end instant is excluded, so a booking ending at
10:00 and one starting at 10:00 do not collide.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Union

from ..exceptions import ValidationError

TimeLike = Union[time, str]


def parse_time(value: TimeLike) -> time:
    """Accept a ``time`` or an ``HH:MM`` / ``HH:MM:SS`` string."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError('time of day is required')
    text = value.strip()
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f'invalid time of day: {value!r}')


@dataclass(frozen=True)
class TimeInterval:
    start: time
    end: time

    @classmethod
    def of(cls, start: TimeLike, end: TimeLike) -> 'TimeInterval':
        s, e = parse_time(start), parse_time(end)
        validate_interval(s, e)
        return cls(s, e)

    def overlaps(self, other: 'TimeInterval') -> bool:
        return overlaps(self, other)

    def contains(self, other: 'TimeInterval') -> bool:
        return contains(self, other)

    def __str__(self) -> str:
        return f"[{self.start:%H:%M}, {self.end:%H:%M})"


def validate_interval(start: Optional[time], end: Optional[time]) -> None:
    if start is None or end is None:
        raise ValidationError('start and end time are required')
    if start >= end:
        raise ValidationError('start time must be before end time', start=start.isoformat(), end=end.isoformat())


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.start < b.end and b.start < a.end


def contains(outer: TimeInterval, inner: TimeInterval) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def covers(interval: TimeInterval, instant: time) -> bool:
    return interval.start <= instant < interval.end


def duration_minutes(interval: TimeInterval) -> int:
    start = interval.start.hour * 60 + interval.start.minute
    end = interval.end.hour * 60 + interval.end.minute
    return end - start
