from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_payment_gateway, get_scheduling_policy, get_session
from ..domain.errors import (
    ConflictError,
    LeadTimeViolationError,
    NotFoundError,
    OutsideAvailabilityError,
    PaymentInitiationError,
)
from ..domain.payments import PaymentGateway
from ..domain.policy import SchedulingPolicy
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyCatalogRepository,
    SqlAlchemyScheduleRepository,
)
from ..models import BookingStatus
from ..schemas import BookingCreate, BookingCreated
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_utc_naive

router = APIRouter(prefix="", tags=["bookings"])


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(**kwargs)
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failure")


@router.post("/bookings", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingCreated:
    catalog_repo = SqlAlchemyCatalogRepository(session)
    schedule_repo = SqlAlchemyScheduleRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)

    # The reservation commits before the payment call so the row is visible
    # to other requests and no lock is held during provider I/O.
    async with session.begin():
        try:
            booking, service, creator = await booking_usecase.reserve_booking(
                catalog_repo,
                schedule_repo,
                booking_repo,
                creator_slug=payload.creator_slug,
                service_id=payload.service_id,
                starts_at=to_utc_naive(payload.start_instant),
                client_name=payload.client_name,
                client_email=payload.client_email,
                client_phone=payload.client_phone,
                notes=payload.notes,
                currency=settings.booking_currency,
                policy=policy,
            )
        except NotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="service not available")
        except (LeadTimeViolationError, OutsideAvailabilityError) as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        except ConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

        _audit(
            action="booking.created",
            initiator="client",
            booking_id=booking.id,
            creator_id=booking.creator_id,
            service_id=booking.service_id,
            starts_at=booking.starts_at,
            status_from=None,
            status_to=booking.status,
            payment_status=booking.payment_status,
        )

    try:
        checkout = await booking_usecase.request_checkout(gateway, booking=booking, service=service, creator=creator)
    except PaymentInitiationError as exc:
        # The pending booking stays without a checkout session; the client may retry or abandon it.
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "payment initiation failed", "bookingId": exc.booking_id},
        )

    async with session.begin():
        booking = await booking_usecase.attach_checkout(booking_repo, booking=booking, checkout=checkout)
        _audit(
            action="booking.checkout_started",
            initiator="system",
            booking_id=booking.id,
            creator_id=booking.creator_id,
            service_id=booking.service_id,
            starts_at=booking.starts_at,
            status_from=BookingStatus.PENDING,
            status_to=booking.status,
            payment_status=booking.payment_status,
            extra={"checkout_session_id": checkout.session_id},
        )

    return BookingCreated(booking_id=booking.id, checkout_url=checkout.url)
