from datetime import date, datetime, timezone
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from .domain.services import TimeSlot
from .utils.time import utc_naive_to_aware


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeSlotRead(CamelModel):
    start: datetime
    end: datetime

    @field_serializer("start", "end")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(timezone.utc).isoformat()

    @classmethod
    def from_domain(cls, slot: TimeSlot) -> "TimeSlotRead":
        return cls(start=utc_naive_to_aware(slot.start), end=utc_naive_to_aware(slot.end))


class AvailableSlotsRead(CamelModel):
    day: date = Field(alias="date")
    service_id: int
    time_slots: list[TimeSlotRead]


class BookingCreate(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    service_id: int = Field(ge=1)
    creator_slug: str = Field(min_length=1, max_length=255)
    start_instant: AwareDatetime
    client_name: str = Field(min_length=1, max_length=255)
    client_email: EmailStr
    client_phone: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("client_email")
    @classmethod
    def lowercase_client_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("client_phone", "notes")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class BookingCreated(CamelModel):
    booking_id: int
    checkout_url: str


class WebhookAck(BaseModel):
    received: bool = True
