from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps and convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventParticipant(BaseModel):
    """Attendee of an event"""
    email: EmailStr
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _blank_name_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value if value and value.strip() else None


class CalendarEvent(BaseModel):
    """
    Event as accepted by the REST API and stored as a VEVENT.

    JSON bodies use camelCase keys (startDate, endDate, createContact);
    Python code uses the snake_case attribute names.
    """
    model_config = ConfigDict(populate_by_name=True)

    uid: Optional[str] = None  # Assigned when encoded, never taken from requests
    summary: str
    description: Optional[str] = None
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    location: Optional[str] = None
    participants: List[EventParticipant] = Field(default_factory=list)
    notes: Optional[str] = None
    create_contact: bool = Field(default=False, alias="createContact")

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_response(self) -> dict:
        """JSON-ready representation used in API responses and webhook payloads"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"create_contact"})

    def dates_differ(self, other: "CalendarEvent") -> bool:
        """True when the start or end of the other event is different"""
        return self.start_date != other.start_date or self.end_date != other.end_date
