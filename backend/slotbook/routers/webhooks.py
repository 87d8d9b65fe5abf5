from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_payment_gateway, get_scheduling_policy, get_session
from ..domain.errors import InvalidPaymentEventError
from ..domain.payments import PaymentGateway
from ..domain.policy import SchedulingPolicy
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemyCatalogRepository
from ..models import BookingStatus
from ..schemas import WebhookAck
from ..usecases import payments as payment_usecase
from ..utils.audit_log import AuditAction, emit_audit_log

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _audit_action(transition: payment_usecase.PaymentTransition) -> AuditAction:
    if transition.slot_conflict:
        return "booking.payment_conflict"
    if transition.status_to == BookingStatus.CONFIRMED:
        return "booking.confirmed"
    return "booking.cancelled"


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
) -> WebhookAck:
    payload = await request.body()
    try:
        event = gateway.parse_event(payload, stripe_signature)
    except InvalidPaymentEventError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    booking_repo = SqlAlchemyBookingRepository(session)
    catalog_repo = SqlAlchemyCatalogRepository(session)
    async with session.begin():
        transition = await payment_usecase.apply_payment_event(
            booking_repo, event, catalog_repo=catalog_repo, policy=policy
        )
        if transition is not None and transition.changed:
            booking = transition.booking
            try:
                emit_audit_log(
                    action=_audit_action(transition),
                    initiator="payment_provider",
                    booking_id=booking.id,
                    creator_id=booking.creator_id,
                    service_id=booking.service_id,
                    starts_at=booking.starts_at,
                    status_from=transition.status_from,
                    status_to=transition.status_to,
                    payment_status=booking.payment_status,
                    message="payment captured for a re-taken slot; refund required" if transition.slot_conflict else None,
                    extra={"event_type": event.type},
                )
            except RuntimeError:
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failure")

    return WebhookAck(received=True)
