from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from caldav_bridge.services.calendar_event import CalendarEvent, as_utc


class Contact(BaseModel):
    """
    Contact as accepted by the REST API and stored as a vCard 4.0 record
    """
    model_config = ConfigDict(populate_by_name=True)

    uid: Optional[str] = None  # Assigned when encoded, never taken from requests
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: EmailStr
    phone: Optional[str] = None  # Work phone
    mobile_phone: Optional[str] = Field(default=None, alias="mobilePhone")
    organization: Optional[str] = None
    next_meeting: Optional[datetime] = Field(default=None, alias="nextMeeting")
    notes: Optional[str] = None

    @field_validator("next_meeting")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_response(self) -> dict:
        """JSON-ready representation used in API responses and webhook payloads"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_participant(cls, email: str, name: Optional[str], event: CalendarEvent) -> "Contact":
        """
        Build the contact created for an event participant.

        The display name (or the local part of the address when there is no
        name) is split on the first space into first and last name.
        """
        first_name, _, last_name = (name or email.split("@")[0]).partition(" ")
        return cls(
            first_name=first_name,
            last_name=last_name.strip(),
            email=email,
            next_meeting=event.start_date,
            notes=f"Created from event: {event.summary}",
        )
