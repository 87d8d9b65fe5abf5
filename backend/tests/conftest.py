import asyncio
from collections import defaultdict
from datetime import datetime, time
from decimal import Decimal
from typing import Optional

import pytest
from slotbook.domain.services import BookedWindow
from slotbook.models import (
    Booking,
    BookingStatus,
    PaymentStatus,
    Profile,
    Service,
    TimeOff,
    WeeklyAvailability,
)
from slotbook.utils.time import utc_now_naive


class InMemoryStore:
    """Rows shared by the fake repositories, standing in for the database."""

    def __init__(self) -> None:
        self.creators: dict[int, Profile] = {}
        self.services: dict[int, Service] = {}
        self.rules: list[WeeklyAvailability] = []
        self.time_off: list[TimeOff] = []
        self.bookings: list[Booking] = []
        self.creator_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.lock_requests: list[int] = []

    def add_creator(self, slug: str = "studio-ana") -> Profile:
        now = utc_now_naive()
        creator = Profile(
            id=len(self.creators) + 1,
            slug=slug,
            full_name="Ana Lopez",
            business_name=None,
            created_at=now,
            updated_at=now,
        )
        self.creators[creator.id] = creator
        return creator

    def add_service(
        self,
        creator: Profile,
        *,
        duration_minutes: int = 30,
        price: Decimal = Decimal("50.00"),
        active: bool = True,
    ) -> Service:
        now = utc_now_naive()
        service = Service(
            id=len(self.services) + 1,
            creator_id=creator.id,
            title="Consultation",
            description=None,
            price=price,
            duration_minutes=duration_minutes,
            active=active,
            created_at=now,
            updated_at=now,
        )
        self.services[service.id] = service
        return service

    def add_rule(self, creator: Profile, day_of_week: int, start: time, end: time, *, active: bool = True) -> None:
        now = utc_now_naive()
        self.rules.append(
            WeeklyAvailability(
                id=len(self.rules) + 1,
                creator_id=creator.id,
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                is_active=active,
                created_at=now,
                updated_at=now,
            )
        )

    def add_time_off(self, creator: Profile, start: datetime, end: datetime) -> None:
        self.time_off.append(
            TimeOff(
                id=len(self.time_off) + 1,
                creator_id=creator.id,
                start_datetime=start,
                end_datetime=end,
                reason="vacation",
                created_at=utc_now_naive(),
            )
        )

    def add_booking(
        self,
        service: Service,
        starts_at: datetime,
        *,
        status: BookingStatus = BookingStatus.CONFIRMED,
        payment_status: PaymentStatus = PaymentStatus.PAID,
        payment_intent_id: Optional[str] = None,
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            id=len(self.bookings) + 1,
            service_id=service.id,
            creator_id=service.creator_id,
            starts_at=starts_at,
            client_name="Client",
            client_email="client@example.com",
            client_phone=None,
            notes=None,
            status=status,
            payment_status=payment_status,
            price_at_booking=service.price,
            currency="usd",
            stripe_checkout_session_id=None,
            stripe_payment_intent_id=payment_intent_id,
            created_at=now,
            updated_at=now,
        )
        self.bookings.append(booking)
        return booking


class FakeCatalogRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.held: list[asyncio.Lock] = []

    async def get_creator_by_slug(self, slug: str) -> Optional[Profile]:
        await asyncio.sleep(0)
        return next((c for c in self.store.creators.values() if c.slug == slug), None)

    async def lock_creator(self, creator_id: int) -> None:
        self.store.lock_requests.append(creator_id)
        lock = self.store.creator_locks[creator_id]
        await lock.acquire()
        self.held.append(lock)

    async def get_active_service(self, service_id: int, creator_id: int) -> Optional[Service]:
        await asyncio.sleep(0)
        service = self.store.services.get(service_id)
        if service is None or service.creator_id != creator_id or not service.active:
            return None
        return service

    async def get_service(self, service_id: int) -> Optional[Service]:
        await asyncio.sleep(0)
        return self.store.services.get(service_id)

    def end_transaction(self) -> None:
        while self.held:
            self.held.pop().release()


class FakeScheduleRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def list_active_rules(self, creator_id: int, day_of_week: int) -> list[WeeklyAvailability]:
        await asyncio.sleep(0)
        return [
            rule
            for rule in self.store.rules
            if rule.creator_id == creator_id and rule.day_of_week == day_of_week and rule.is_active
        ]

    async def list_time_off(self, creator_id: int, start: datetime, end: datetime) -> list[TimeOff]:
        await asyncio.sleep(0)
        return [
            period
            for period in self.store.time_off
            if period.creator_id == creator_id and period.start_datetime < end and period.end_datetime > start
        ]


class FakeBookingRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def list_occupying(
        self,
        creator_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[BookedWindow]:
        await asyncio.sleep(0)
        return [
            BookedWindow(starts_at=b.starts_at, duration_minutes=self.store.services[b.service_id].duration_minutes)
            for b in self.store.bookings
            if b.creator_id == creator_id
            and b.is_occupying()
            and (start is None or b.starts_at >= start)
            and (end is None or b.starts_at < end)
        ]

    async def create(self, **fields: object) -> Booking:
        await asyncio.sleep(0)
        now = utc_now_naive()
        booking = Booking(
            id=len(self.store.bookings) + 1,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.store.bookings.append(booking)
        return booking

    async def get_for_update(self, booking_id: int) -> Optional[Booking]:
        return next((b for b in self.store.bookings if b.id == booking_id), None)

    async def get_by_payment_intent_for_update(self, payment_intent_id: str) -> Optional[Booking]:
        return next((b for b in self.store.bookings if b.stripe_payment_intent_id == payment_intent_id), None)

    async def attach_checkout(
        self,
        booking: Booking,
        *,
        checkout_session_id: str,
        payment_intent_id: Optional[str],
    ) -> Booking:
        booking.stripe_checkout_session_id = checkout_session_id
        booking.stripe_payment_intent_id = payment_intent_id
        return booking

    async def set_status(self, booking: Booking, *, status: BookingStatus, payment_status: PaymentStatus) -> Booking:
        booking.status = status
        booking.payment_status = payment_status
        return booking


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


Repos = tuple[FakeCatalogRepo, FakeScheduleRepo, FakeBookingRepo]


@pytest.fixture
def make_repos(store: InMemoryStore):
    """One set of repositories per simulated request/transaction."""

    def _make() -> Repos:
        return FakeCatalogRepo(store), FakeScheduleRepo(store), FakeBookingRepo(store)

    return _make
