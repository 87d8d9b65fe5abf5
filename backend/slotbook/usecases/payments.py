import logging
from dataclasses import dataclass
from datetime import timedelta

from ..domain.intervals import Interval
from ..domain.payments import PaymentEvent
from ..domain.policy import SchedulingPolicy
from ..domain.repositories import BookingRepository, CatalogRepository
from ..domain.services import collides_with_bookings
from ..models import Booking, BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"

_TRANSITIONS: dict[str, tuple[BookingStatus, PaymentStatus]] = {
    CHECKOUT_COMPLETED: (BookingStatus.CONFIRMED, PaymentStatus.PAID),
    "checkout.session.expired": (BookingStatus.CANCELLED, PaymentStatus.UNPAID),
    "payment_intent.payment_failed": (BookingStatus.CANCELLED, PaymentStatus.UNPAID),
}


@dataclass(frozen=True)
class PaymentTransition:
    booking: Booking
    status_from: BookingStatus
    status_to: BookingStatus
    changed: bool
    # Payment captured for a booking whose slot was taken after it was cancelled.
    slot_conflict: bool = False


async def _find_booking(booking_repo: BookingRepository, event: PaymentEvent) -> Booking | None:
    if event.booking_id is not None:
        return await booking_repo.get_for_update(event.booking_id)
    if event.payment_intent_id:
        return await booking_repo.get_by_payment_intent_for_update(event.payment_intent_id)
    return None


def _is_retried_payment(booking: Booking, event: PaymentEvent) -> bool:
    # A failed attempt cancels the booking, but the checkout session stays open
    # and the client may still complete it with another payment method.
    return (
        event.type == CHECKOUT_COMPLETED
        and booking.status == BookingStatus.CANCELLED
        and booking.payment_status == PaymentStatus.UNPAID
    )


async def _reinstate(
    booking_repo: BookingRepository,
    catalog_repo: CatalogRepository,
    booking: Booking,
    *,
    policy: SchedulingPolicy,
) -> PaymentTransition:
    await catalog_repo.lock_creator(booking.creator_id)
    service = await catalog_repo.get_service(booking.service_id)
    if service is None:
        raise LookupError(f"service {booking.service_id} of booking {booking.id} is missing")

    interval = Interval(booking.starts_at, booking.starts_at + timedelta(minutes=service.duration_minutes))
    booked = await booking_repo.list_occupying(booking.creator_id)
    if collides_with_bookings(interval, booked, policy=policy):
        logger.warning("booking %s paid after cancellation but its slot was taken; refund required", booking.id)
        updated = await booking_repo.set_status(
            booking, status=BookingStatus.CANCELLED, payment_status=PaymentStatus.PAID
        )
        return PaymentTransition(
            booking=updated,
            status_from=BookingStatus.CANCELLED,
            status_to=BookingStatus.CANCELLED,
            changed=True,
            slot_conflict=True,
        )

    updated = await booking_repo.set_status(booking, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
    logger.info("booking %s reinstated after a retried payment", booking.id)
    return PaymentTransition(
        booking=updated,
        status_from=BookingStatus.CANCELLED,
        status_to=BookingStatus.CONFIRMED,
        changed=True,
    )


async def apply_payment_event(
    booking_repo: BookingRepository,
    event: PaymentEvent,
    *,
    catalog_repo: CatalogRepository,
    policy: SchedulingPolicy,
) -> PaymentTransition | None:
    """
    Move a booking along after a payment provider notification.

    Pending bookings follow the transition table. A completed checkout also
    reinstates a booking cancelled by an earlier failed attempt, provided its
    slot is still free; otherwise the payment is recorded on the cancelled
    booking and flagged. Every other event for a booking that already left
    pending is a no-op. Returns None for event types we do not act on or
    bookings we cannot find.
    """
    target = _TRANSITIONS.get(event.type)
    if target is None:
        logger.info("ignoring payment event %s", event.type)
        return None

    booking = await _find_booking(booking_repo, event)
    if booking is None:
        logger.warning(
            "payment event %s references unknown booking (booking_id=%s, payment_intent=%s)",
            event.type,
            event.booking_id,
            event.payment_intent_id,
        )
        return None

    if _is_retried_payment(booking, event):
        return await _reinstate(booking_repo, catalog_repo, booking, policy=policy)

    status, payment_status = target
    status_from = booking.status
    if status_from != BookingStatus.PENDING:
        logger.info("booking %s already %s, ignoring %s", booking.id, status_from, event.type)
        return PaymentTransition(booking=booking, status_from=status_from, status_to=status_from, changed=False)

    updated = await booking_repo.set_status(booking, status=status, payment_status=payment_status)
    logger.info("booking %s moved %s -> %s on %s", updated.id, status_from, status, event.type)
    return PaymentTransition(booking=updated, status_from=status_from, status_to=status, changed=True)
