from datetime import date, datetime, timedelta

from ..domain.errors import NotFoundError
from ..domain.intervals import Interval
from ..domain.policy import SchedulingPolicy, day_of_week
from ..domain.repositories import BookingRepository, CatalogRepository, ScheduleRepository
from ..domain.services import AvailabilityWindow, TimeSlot, generate_time_slots
from ..utils.time import utc_now_naive

# Bookings that started the previous day can still run (with buffer) into this one.
_BOOKING_LOOKBACK = timedelta(days=1)


async def list_available_slots(
    catalog_repo: CatalogRepository,
    schedule_repo: ScheduleRepository,
    booking_repo: BookingRepository,
    *,
    creator_slug: str,
    service_id: int,
    day: date,
    policy: SchedulingPolicy,
    now: datetime | None = None,
) -> list[TimeSlot]:
    creator = await catalog_repo.get_creator_by_slug(creator_slug)
    if creator is None:
        raise NotFoundError("creator not found")
    service = await catalog_repo.get_active_service(service_id, creator.id)
    if service is None:
        raise NotFoundError("service not found")

    rules = await schedule_repo.list_active_rules(creator.id, day_of_week(day))
    if not rules:
        return []

    day_start, day_end = policy.day_bounds(day)
    booked = await booking_repo.list_occupying(creator.id, start=day_start - _BOOKING_LOOKBACK, end=day_end)
    time_off = await schedule_repo.list_time_off(creator.id, day_start, day_end)

    return generate_time_slots(
        day,
        [AvailabilityWindow(rule.start_time, rule.end_time) for rule in rules],
        duration_minutes=service.duration_minutes,
        booked=booked,
        time_off=[Interval(period.start_datetime, period.end_datetime) for period in time_off],
        policy=policy,
        now=now or utc_now_naive(),
    )
