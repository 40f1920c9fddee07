"""
iCalendar Codec

Converts CalendarEvent objects to single-event VCALENDAR records and parses
VCALENDAR data (a single event resource or a whole collection export) back
into CalendarEvent objects.

Encoding relies on the icalendar package for escaping, line folding and
UTC date-time formatting. Decoding never raises: unreadable input produces
an empty result and events missing required properties are skipped.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Union

from icalendar import Calendar, Event, vCalAddress, vText
from pydantic import ValidationError

from caldav_bridge.codec.components import EventCalendar
from caldav_bridge.services.calendar_event import CalendarEvent, EventParticipant, as_utc
from caldav_bridge.utils.identifiers import IdentifierGenerator, default_generator

# Set up logging
logger = logging.getLogger(__name__)

MAILTO = "mailto:"
NOTES_PROPERTY = "X-ALT-DESC"
NOTES_FORMAT = "text/plain"


def encode_event(event: CalendarEvent, id_generator: Optional[IdentifierGenerator] = None) -> str:
    """
    Encode an event as a VCALENDAR record with a freshly generated UID.

    Start and end are written in UTC basic format (20240315T100000Z).
    """
    generator = id_generator or default_generator

    vevent = Event()
    vevent.add("uid", generator.new_id())
    vevent.add("summary", event.summary)
    vevent.add("dtstart", _whole_seconds(event.start_date))
    vevent.add("dtend", _whole_seconds(event.end_date))

    if event.description is not None:
        vevent.add("description", event.description)
    if event.location is not None:
        vevent.add("location", event.location)
    if event.notes is not None:
        vevent.add(NOTES_PROPERTY, vText(event.notes), parameters={"FMTTYPE": NOTES_FORMAT})

    for participant in event.participants:
        parameters = {"CN": participant.name} if participant.name else None
        vevent.add("attendee", vCalAddress(MAILTO + participant.email), parameters=parameters)

    calendar = Calendar()
    calendar.add("version", "2.0")
    calendar.add_component(vevent)
    return calendar.to_ical(sorted=False).decode("utf-8")


def decode_events(data: Union[str, bytes, None]) -> List[CalendarEvent]:
    """Decode every VEVENT found in the data, skipping the ones that are incomplete"""
    events = []
    for vevent in _walk_vevents(data):
        event = _event_from_component(vevent)
        if event is not None:
            events.append(event)
    return events


def decode_event(data: Union[str, bytes, None]) -> Optional[CalendarEvent]:
    """Decode the first complete VEVENT in the data, or None"""
    events = decode_events(data)
    return events[0] if events else None


def _walk_vevents(data: Union[str, bytes, None]) -> List[Any]:
    if not data or not data.strip():
        return []

    try:
        calendars = EventCalendar.from_ical(data, multiple=True)
    except Exception as e:
        logger.warning(f"Could not parse iCalendar data: {e}")
        return []

    return [vevent for calendar in calendars for vevent in calendar.walk("VEVENT")]


def _event_from_component(vevent: Any) -> Optional[CalendarEvent]:
    try:
        return CalendarEvent(
            uid=_text(vevent.get("UID")),
            summary=_text(vevent.get("SUMMARY")),
            description=_text(vevent.get("DESCRIPTION")),
            start_date=_as_datetime(vevent.decoded("DTSTART")),
            end_date=_as_datetime(_end(vevent)),
            location=_text(vevent.get("LOCATION")),
            notes=_notes(vevent),
            participants=_participants(vevent),
        )
    except ValidationError as e:
        logger.warning(f"Skipping incomplete VEVENT {vevent.get('UID')}: {e.error_count()} invalid fields")
        return None
    except Exception as e:
        # A missing DTSTART or an unreadable property only skips this event
        logger.warning(f"Skipping VEVENT {vevent.get('UID')}: {e!r}")
        return None


def _participants(vevent: Any) -> List[EventParticipant]:
    participants = []
    for attendee in _as_list(vevent.get("ATTENDEE")):
        address = str(attendee)
        if address.lower().startswith(MAILTO):
            address = address[len(MAILTO):]
        # An unquoted comma splits CN into several values
        name = ", ".join(_as_list(getattr(attendee, "params", {}).get("CN"))) or None
        try:
            participants.append(EventParticipant(email=address, name=name))
        except ValidationError:
            logger.warning(f"Ignoring attendee with invalid address: {address}")
    return participants


def _notes(vevent: Any) -> Optional[str]:
    for value in _as_list(vevent.get(NOTES_PROPERTY)):
        # HTML alternate descriptions are not notes
        fmttypes = _as_list(getattr(value, "params", {}).get("FMTTYPE", NOTES_FORMAT))
        if any(fmttype.lower() == NOTES_FORMAT for fmttype in fmttypes):
            return str(value)
    return None


def _end(vevent: Any) -> Any:
    """DTEND, or the end derived from DURATION or the default event length"""
    if "DTEND" in vevent:
        return vevent.decoded("DTEND")
    return vevent.end


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        # All-day events start at midnight UTC
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"Unsupported date value: {value!r}")


def _whole_seconds(value: datetime) -> datetime:
    return as_utc(value).replace(microsecond=0)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0]
    return str(value)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
