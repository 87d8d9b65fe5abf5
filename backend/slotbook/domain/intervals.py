"""Half-open interval arithmetic shared by slot generation and booking validation.

Every interval is ``[start, end)``: an interval that ends exactly when another
one starts does not overlap it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("interval start must be earlier than end")

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)


def occupied_interval(start: datetime, duration_minutes: int, buffer_minutes: int) -> Interval:
    """Interval a booking blocks: its duration plus the trailing buffer."""
    return Interval(start, start + timedelta(minutes=duration_minutes + buffer_minutes))


def any_overlap(interval: Interval, others: Iterable[Interval]) -> bool:
    return any(interval.overlaps(other) for other in others)
