from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from fastapi.concurrency import run_in_threadpool

from ..domain.errors import InvalidPaymentEventError, PaymentInitiationError
from ..domain.payments import CheckoutSession, PaymentEvent, PaymentGateway
from ..models import Booking, Profile, Service

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _parse_booking_id(raw: Any) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class StripeCheckoutGateway(PaymentGateway):
    """Stripe Checkout in `payment` mode; one line item per booking."""

    def __init__(self, *, secret_key: str, webhook_secret: str, public_base_url: str) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.public_base_url = public_base_url.rstrip("/")

    def checkout_params(self, *, booking: Booking, service: Service, creator: Profile) -> dict[str, Any]:
        return {
            "customer_email": booking.client_email,
            "line_items": [
                {
                    "price_data": {
                        "currency": booking.currency,
                        "product_data": {
                            "name": service.title,
                            "description": f"Session with {creator.display_name}",
                        },
                        "unit_amount": to_minor_units(booking.price_at_booking),
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": f"{self.public_base_url}/booking/success?bookingId={booking.id}",
            "cancel_url": f"{self.public_base_url}/booking/cancelled?bookingId={booking.id}",
            "metadata": {"bookingId": str(booking.id)},
            "payment_intent_data": {"metadata": {"bookingId": str(booking.id)}},
        }

    async def create_checkout(self, *, booking: Booking, service: Service, creator: Profile) -> CheckoutSession:
        params = self.checkout_params(booking=booking, service=service, creator=creator)
        try:
            session = await run_in_threadpool(stripe.checkout.Session.create, api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            logger.error("checkout session creation failed for booking %s: %s", booking.id, exc)
            raise PaymentInitiationError("payment initiation failed", booking_id=booking.id) from exc

        payment_intent = session.get("payment_intent")
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.get("id")
        logger.info("checkout session %s created for booking %s", session["id"], booking.id)
        return CheckoutSession(session_id=session["id"], url=session["url"], payment_intent_id=payment_intent)

    def parse_event(self, payload: bytes, signature: str | None) -> PaymentEvent:
        if not signature or not self.webhook_secret:
            raise InvalidPaymentEventError("missing signature or webhook secret")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as exc:
            raise InvalidPaymentEventError("invalid payload") from exc
        except stripe.SignatureVerificationError as exc:
            raise InvalidPaymentEventError("invalid signature") from exc

        event_type = event["type"]
        obj = event["data"]["object"]
        metadata = obj.get("metadata") or {}
        # The payment intent only exists once the client submits payment, so
        # it carries the booking id in its own metadata.
        if event_type.startswith("payment_intent."):
            return PaymentEvent(
                type=event_type,
                booking_id=_parse_booking_id(metadata.get("bookingId")),
                payment_intent_id=obj.get("id"),
            )
        return PaymentEvent(
            type=event_type,
            booking_id=_parse_booking_id(metadata.get("bookingId")),
            payment_intent_id=obj.get("payment_intent"),
        )
