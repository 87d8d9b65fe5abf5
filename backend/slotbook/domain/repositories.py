from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from ..models import Booking, BookingStatus, PaymentStatus, Profile, Service, TimeOff, WeeklyAvailability
from .services import BookedWindow


class CatalogRepository(Protocol):
    async def get_creator_by_slug(self, slug: str) -> Profile | None: ...

    async def lock_creator(self, creator_id: int) -> None: ...

    async def get_active_service(self, service_id: int, creator_id: int) -> Service | None: ...

    async def get_service(self, service_id: int) -> Service | None: ...

class ScheduleRepository(Protocol):
    async def list_active_rules(self, creator_id: int, day_of_week: int) -> list[WeeklyAvailability]: ...

    async def list_time_off(self, creator_id: int, start: datetime, end: datetime) -> list[TimeOff]: ...


class BookingRepository(Protocol):
    async def list_occupying(
        self,
        creator_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[BookedWindow]: ...

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
    ) -> Booking: ...

    async def get_for_update(self, booking_id: int) -> Booking | None: ...

    async def get_by_payment_intent_for_update(self, payment_intent_id: str) -> Booking | None: ...

    async def attach_checkout(
        self,
        booking: Booking,
        *,
        checkout_session_id: str,
        payment_intent_id: str | None,
    ) -> Booking: ...

    async def set_status(
        self,
        booking: Booking,
        *,
        status: BookingStatus,
        payment_status: PaymentStatus,
    ) -> Booking: ...
