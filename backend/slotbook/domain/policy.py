from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..config import Settings


@dataclass(frozen=True)
class SchedulingPolicy:
    """Buffer, lead time and business timezone shared by slot generation and booking validation.

    All instants handled by the policy are UTC-naive, matching how they are stored.
    """

    buffer_minutes: int = 15
    min_lead_time_hours: int = 2
    timezone: str = "UTC"
    _zone: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.buffer_minutes < 0:
            raise ValueError("buffer_minutes must be >= 0")
        if self.min_lead_time_hours < 0:
            raise ValueError("min_lead_time_hours must be >= 0")
        object.__setattr__(self, "_zone", ZoneInfo(self.timezone))

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulingPolicy":
        return cls(
            buffer_minutes=settings.booking_buffer_minutes,
            min_lead_time_hours=settings.booking_min_lead_time_hours,
            timezone=settings.business_timezone,
        )

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def min_start(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.min_lead_time_hours)

    def slot_step(self, duration_minutes: int) -> timedelta:
        return timedelta(minutes=duration_minutes + self.buffer_minutes)

    def local_to_utc(self, day: date, time_of_day: time) -> datetime:
        local = datetime.combine(day, time_of_day, tzinfo=self._zone)
        return local.astimezone(timezone.utc).replace(tzinfo=None)

    def utc_to_local(self, instant: datetime) -> datetime:
        return instant.replace(tzinfo=timezone.utc).astimezone(self._zone)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC-naive [start, end) of a calendar day in the business timezone."""
        return self.local_to_utc(day, time.min), self.local_to_utc(day + timedelta(days=1), time.min)


def day_of_week(day: date) -> int:
    """Weekday number with Sunday=0 ... Saturday=6."""
    return day.isoweekday() % 7
