from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_scheduling_policy, get_session
from ..domain.errors import NotFoundError
from ..domain.policy import SchedulingPolicy
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyCatalogRepository,
    SqlAlchemyScheduleRepository,
)
from ..schemas import AvailableSlotsRead, TimeSlotRead
from ..usecases import slots as slot_usecase

router = APIRouter(prefix="/creators", tags=["slots"])


@router.get("/{creator_slug}/services/{service_id}/slots", response_model=AvailableSlotsRead)
async def list_available_slots(
    creator_slug: str,
    service_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date", description="Calendar date (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_session),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
) -> AvailableSlotsRead:
    catalog_repo = SqlAlchemyCatalogRepository(session)
    schedule_repo = SqlAlchemyScheduleRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        slots = await slot_usecase.list_available_slots(
            catalog_repo,
            schedule_repo,
            booking_repo,
            creator_slug=creator_slug,
            service_id=service_id,
            day=day,
            policy=policy,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    return AvailableSlotsRead(
        day=day,
        service_id=service_id,
        time_slots=[TimeSlotRead.from_domain(slot) for slot in slots],
    )
