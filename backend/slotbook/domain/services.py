from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Sequence

from .errors import ConflictError, LeadTimeViolationError, OutsideAvailabilityError
from .intervals import Interval, any_overlap, occupied_interval
from .policy import SchedulingPolicy


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class AvailabilityWindow:
    start_time: time
    end_time: time

    def contains(self, time_of_day: time) -> bool:
        return self.start_time <= time_of_day < self.end_time


@dataclass(frozen=True)
class BookedWindow:
    """An occupying booking: its start and the duration of the service it booked."""

    starts_at: datetime
    duration_minutes: int


@dataclass(frozen=True)
class BookingSnapshot:
    proposed_start: datetime
    duration_minutes: int
    windows: Sequence[AvailabilityWindow]
    booked: Sequence[BookedWindow]
    time_off: Sequence[Interval]


def generate_time_slots(
    day: date,
    windows: Sequence[AvailabilityWindow],
    *,
    duration_minutes: int,
    booked: Sequence[BookedWindow],
    time_off: Sequence[Interval],
    policy: SchedulingPolicy,
    now: datetime,
) -> list[TimeSlot]:
    """
    Enumerate bookable slots of `duration_minutes` on `day`.

    Each window is walked from its start in strides of duration + buffer; a
    candidate is offered when it fits inside the window, ends after the lead
    time cutoff and overlaps neither an occupied booking interval nor time off.
    Slots from several windows are merged, ordered by start, one per start time.
    """
    if not windows:
        return []

    duration = timedelta(minutes=duration_minutes)
    step = policy.slot_step(duration_minutes)
    min_start = policy.min_start(now)
    occupied = [occupied_interval(b.starts_at, b.duration_minutes, policy.buffer_minutes) for b in booked]

    slots: dict[datetime, TimeSlot] = {}
    for window in windows:
        window_end = policy.local_to_utc(day, window.end_time)
        slot_start = policy.local_to_utc(day, window.start_time)
        while slot_start + duration <= window_end:
            candidate = Interval(slot_start, slot_start + duration)
            if (
                candidate.end > min_start
                and not any_overlap(candidate, occupied)
                and not any_overlap(candidate, time_off)
            ):
                slots.setdefault(candidate.start, TimeSlot(start=candidate.start, end=candidate.end))
            slot_start += step

    return [slots[start] for start in sorted(slots)]


def validate_booking_request(snapshot: BookingSnapshot, *, policy: SchedulingPolicy, now: datetime) -> Interval:
    """
    Pure validation: lead time, weekly availability, then overlap with bookings and time off.
    Returns the booking's own interval if OK. Raises domain errors otherwise.
    """
    if snapshot.proposed_start <= policy.min_start(now):
        raise LeadTimeViolationError(
            f"bookings must be made at least {policy.min_lead_time_hours} hours in advance"
        )

    time_of_day = policy.utc_to_local(snapshot.proposed_start).time()
    if not any(window.contains(time_of_day) for window in snapshot.windows):
        raise OutsideAvailabilityError("selected time is outside the creator's availability hours")

    proposed = Interval(
        snapshot.proposed_start,
        snapshot.proposed_start + timedelta(minutes=snapshot.duration_minutes),
    )
    if collides_with_bookings(proposed, snapshot.booked, policy=policy):
        raise ConflictError("this time slot is no longer available")
    if any_overlap(proposed, snapshot.time_off):
        raise ConflictError("creator is not available during this time")
    return proposed


def collides_with_bookings(interval: Interval, booked: Sequence[BookedWindow], *, policy: SchedulingPolicy) -> bool:
    """True when `interval` overlaps any occupying booking extended by the buffer."""
    occupied = [occupied_interval(b.starts_at, b.duration_minutes, policy.buffer_minutes) for b in booked]
    return any_overlap(interval, occupied)
