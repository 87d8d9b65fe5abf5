from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..models import Booking, Profile, Service


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str
    payment_intent_id: str | None = None


@dataclass(frozen=True)
class PaymentEvent:
    type: str
    booking_id: int | None = None
    payment_intent_id: str | None = None


class PaymentGateway(Protocol):
    async def create_checkout(self, *, booking: Booking, service: Service, creator: Profile) -> CheckoutSession: ...

    def parse_event(self, payload: bytes, signature: str | None) -> PaymentEvent: ...
