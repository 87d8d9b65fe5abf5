import logging
from datetime import datetime, timedelta

from ..domain.errors import NotFoundError
from ..domain.intervals import Interval
from ..domain.payments import CheckoutSession, PaymentGateway
from ..domain.policy import SchedulingPolicy, day_of_week
from ..domain.repositories import BookingRepository, CatalogRepository, ScheduleRepository
from ..domain.services import AvailabilityWindow, BookingSnapshot, validate_booking_request
from ..models import Booking, Profile, Service
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)


async def reserve_booking(
    catalog_repo: CatalogRepository,
    schedule_repo: ScheduleRepository,
    booking_repo: BookingRepository,
    *,
    creator_slug: str,
    service_id: int,
    starts_at: datetime,
    client_name: str,
    client_email: str,
    client_phone: str | None,
    notes: str | None,
    currency: str,
    policy: SchedulingPolicy,
    now: datetime | None = None,
) -> tuple[Booking, Service, Profile]:
    """
    Re-check a proposed start against current data and insert a pending booking.

    `starts_at` is UTC-naive. Must run inside a transaction: the creator row
    lock taken here is what keeps two concurrent requests from both passing
    the conflict check.
    """
    creator = await catalog_repo.get_creator_by_slug(creator_slug)
    if creator is None:
        raise NotFoundError("creator not found")
    service = await catalog_repo.get_active_service(service_id, creator.id)
    if service is None:
        raise NotFoundError("service not found")

    await catalog_repo.lock_creator(creator.id)

    local_day = policy.utc_to_local(starts_at).date()
    rules = await schedule_repo.list_active_rules(creator.id, day_of_week(local_day))
    booked = await booking_repo.list_occupying(creator.id)
    ends_at = starts_at + timedelta(minutes=service.duration_minutes)
    time_off = await schedule_repo.list_time_off(creator.id, starts_at, ends_at)

    snapshot = BookingSnapshot(
        proposed_start=starts_at,
        duration_minutes=service.duration_minutes,
        windows=[AvailabilityWindow(rule.start_time, rule.end_time) for rule in rules],
        booked=booked,
        time_off=[Interval(period.start_datetime, period.end_datetime) for period in time_off],
    )
    validate_booking_request(snapshot, policy=policy, now=now or utc_now_naive())

    booking = await booking_repo.create(
        service_id=service.id,
        creator_id=creator.id,
        starts_at=starts_at,
        client_name=client_name,
        client_email=client_email,
        client_phone=client_phone,
        notes=notes,
        price_at_booking=service.price,
        currency=currency,
    )
    logger.info("booking %s reserved for creator %s at %s", booking.id, creator.id, starts_at.isoformat())
    return booking, service, creator


async def request_checkout(
    gateway: PaymentGateway,
    *,
    booking: Booking,
    service: Service,
    creator: Profile,
) -> CheckoutSession:
    """Ask the payment provider for a checkout session. Raises PaymentInitiationError."""
    return await gateway.create_checkout(booking=booking, service=service, creator=creator)


async def attach_checkout(
    booking_repo: BookingRepository,
    *,
    booking: Booking,
    checkout: CheckoutSession,
) -> Booking:
    return await booking_repo.attach_checkout(
        booking,
        checkout_session_id=checkout.session_id,
        payment_intent_id=checkout.payment_intent_id,
    )
