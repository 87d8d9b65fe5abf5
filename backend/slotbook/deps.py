from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.payments import PaymentGateway
from .domain.policy import SchedulingPolicy
from .infrastructure.payments import StripeCheckoutGateway


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


@lru_cache
def get_scheduling_policy() -> SchedulingPolicy:
    return SchedulingPolicy.from_settings(get_settings())


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    return StripeCheckoutGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        public_base_url=settings.public_base_url,
    )
