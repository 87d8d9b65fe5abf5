from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Tuple

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import BookingRepository, CatalogRepository, ScheduleRepository
from ..domain.services import BookedWindow
from ..models import Booking, BookingStatus, PaymentStatus, Profile, Service, TimeOff, WeeklyAvailability
from ..utils.time import utc_now_naive


class SqlAlchemyCatalogRepository(CatalogRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_creator_by_slug(self, slug: str) -> Profile | None:
        result = await self.session.scalar(select(Profile).where(Profile.slug == slug))
        return result if isinstance(result, Profile) else None

    async def lock_creator(self, creator_id: int) -> None:
        # Row lock on the creator serialises concurrent check-then-insert runs
        # for the same calendar until the surrounding transaction ends.
        await self.session.scalar(select(Profile.id).where(Profile.id == creator_id).with_for_update())

    async def get_active_service(self, service_id: int, creator_id: int) -> Service | None:
        stmt = select(Service).where(
            Service.id == service_id,
            Service.creator_id == creator_id,
            Service.active.is_(True),
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Service) else None

    async def get_service(self, service_id: int) -> Service | None:
        return await self.session.get(Service, service_id)


class SqlAlchemyScheduleRepository(ScheduleRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active_rules(self, creator_id: int, day_of_week: int) -> list[WeeklyAvailability]:
        stmt = (
            select(WeeklyAvailability)
            .where(
                WeeklyAvailability.creator_id == creator_id,
                WeeklyAvailability.day_of_week == day_of_week,
                WeeklyAvailability.is_active.is_(True),
            )
            .order_by(WeeklyAvailability.start_time)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_time_off(self, creator_id: int, start: datetime, end: datetime) -> list[TimeOff]:
        stmt = select(TimeOff).where(
            TimeOff.creator_id == creator_id,
            TimeOff.start_datetime < end,
            TimeOff.end_datetime > start,
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_occupying(
        self,
        creator_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[BookedWindow]:
        stmt: Select[Tuple[datetime, Any]] = (
            select(Booking.starts_at, Service.duration_minutes)
            .join(Service, Booking.service_id == Service.id)
            .where(Booking.creator_id == creator_id, Booking.occupying_clause())
        )
        if start is not None:
            stmt = stmt.where(Booking.starts_at >= start)
        if end is not None:
            stmt = stmt.where(Booking.starts_at < end)
        rows = await self.session.execute(stmt)
        return [BookedWindow(starts_at=starts_at, duration_minutes=int(duration)) for starts_at, duration in rows.all()]

    async def create(
        self,
        *,
        service_id: int,
        creator_id: int,
        starts_at: datetime,
        client_name: str,
        client_email: str,
        client_phone: str | None,
        notes: str | None,
        price_at_booking: Decimal,
        currency: str,
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            service_id=service_id,
            creator_id=creator_id,
            starts_at=starts_at,
            client_name=client_name,
            client_email=client_email,
            client_phone=client_phone,
            notes=notes,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            price_at_booking=price_at_booking,
            currency=currency,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_for_update(self, booking_id: int) -> Optional[Booking]:
        result = await self.session.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        return result if isinstance(result, Booking) else None

    async def get_by_payment_intent_for_update(self, payment_intent_id: str) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.stripe_payment_intent_id == payment_intent_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Booking) else None

    async def attach_checkout(
        self,
        booking: Booking,
        *,
        checkout_session_id: str,
        payment_intent_id: str | None,
    ) -> Booking:
        booking.stripe_checkout_session_id = checkout_session_id
        booking.stripe_payment_intent_id = payment_intent_id
        booking.updated_at = utc_now_naive()
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def set_status(
        self,
        booking: Booking,
        *,
        status: BookingStatus,
        payment_status: PaymentStatus,
    ) -> Booking:
        booking.status = status
        booking.payment_status = payment_status
        booking.updated_at = utc_now_naive()
        self.session.add(booking)
        await self.session.flush()
        return booking
