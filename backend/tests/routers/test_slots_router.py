from datetime import date, datetime
from typing import cast

import pytest
from fastapi import HTTPException
from slotbook.domain.errors import NotFoundError
from slotbook.domain.policy import SchedulingPolicy
from slotbook.domain.services import TimeSlot
from slotbook.routers import slots as router
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    pass


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "SqlAlchemyCatalogRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyScheduleRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyBookingRepository", lambda s: s)  # type: ignore[assignment]


@pytest.mark.asyncio
async def test_list_slots_returns_iso_utc_times(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[TimeSlot]:
        assert kwargs["creator_slug"] == "studio-ana"
        assert kwargs["day"] == date(2030, 1, 7)
        return [
            TimeSlot(start=datetime(2030, 1, 7, 9, 0), end=datetime(2030, 1, 7, 9, 30)),
            TimeSlot(start=datetime(2030, 1, 7, 9, 45), end=datetime(2030, 1, 7, 10, 15)),
        ]

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.slot_usecase, "list_available_slots", fake_list)

    result = await router.list_available_slots(
        creator_slug="studio-ana",
        service_id=3,
        day=date(2030, 1, 7),
        session=cast(AsyncSession, DummySession()),
        policy=SchedulingPolicy(),
    )

    assert result.model_dump(by_alias=True, mode="json") == {
        "date": "2030-01-07",
        "serviceId": 3,
        "timeSlots": [
            {"start": "2030-01-07T09:00:00+00:00", "end": "2030-01-07T09:30:00+00:00"},
            {"start": "2030-01-07T09:45:00+00:00", "end": "2030-01-07T10:15:00+00:00"},
        ],
    }


@pytest.mark.asyncio
async def test_list_slots_returns_404_when_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[TimeSlot]:
        raise NotFoundError("creator not found")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.slot_usecase, "list_available_slots", fake_list)

    with pytest.raises(HTTPException) as excinfo:
        await router.list_available_slots(
            creator_slug="nobody",
            service_id=3,
            day=date(2030, 1, 7),
            session=cast(AsyncSession, DummySession()),
            policy=SchedulingPolicy(),
        )
    assert excinfo.value.status_code == 404
