"""
vCard Codec

Converts Contact objects to vCard 4.0 records and parses vCard data (one
card or a whole address book export) back into Contact objects. icalendar
handles escaping, folding and the structured N/ORG values.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from icalendar import vN, vOrg
from pydantic import ValidationError

from caldav_bridge.codec.components import VCard
from caldav_bridge.services.contact import Contact
from caldav_bridge.services.calendar_event import as_utc
from caldav_bridge.utils.identifiers import IdentifierGenerator, default_generator

# Set up logging
logger = logging.getLogger(__name__)

VCARD_VERSION = "4.0"
NEXT_MEETING_PROPERTY = "X-NEXT-MEETING"
WORK_TYPE = "work"
CELL_TYPE = "cell"
MOBILE_TYPES = {"cell", "mobile"}

ISO_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
BASIC_UTC_FORMAT = "%Y%m%dT%H%M%SZ"


def encode_contact(contact: Contact, id_generator: Optional[IdentifierGenerator] = None) -> str:
    """Encode a contact as a vCard 4.0 record with a freshly generated UID"""
    generator = id_generator or default_generator

    card = VCard()
    card.add("version", VCARD_VERSION)
    card.add("uid", generator.new_id())
    card.add("fn", contact.full_name)
    card.add("n", vN((contact.last_name, contact.first_name, "", "", "")))
    card.add("email", contact.email)

    if contact.phone is not None:
        card.add("tel", contact.phone, parameters={"TYPE": WORK_TYPE})
    if contact.mobile_phone is not None:
        card.add("tel", contact.mobile_phone, parameters={"TYPE": CELL_TYPE})
    if contact.organization is not None:
        card.add("org", vOrg((contact.organization,)))
    if contact.next_meeting is not None:
        card.add(NEXT_MEETING_PROPERTY, format_instant(contact.next_meeting))
    if contact.notes is not None:
        card.add("note", contact.notes)

    return card.to_ical(sorted=False).decode("utf-8")


def decode_contacts(data: Union[str, bytes, None]) -> List[Contact]:
    """Decode every VCARD in the data, skipping cards without the required fields"""
    if not data or not data.strip():
        return []

    try:
        cards = VCard.from_ical(data, multiple=True)
    except Exception as e:
        logger.warning(f"Could not parse vCard data: {e}")
        return []

    contacts = []
    for card in cards:
        if card.name != VCard.name:
            continue
        contact = _contact_from_card(card)
        if contact is not None:
            contacts.append(contact)
    return contacts


def decode_contact(data: Union[str, bytes, None]) -> Optional[Contact]:
    """Decode the first complete VCARD in the data, or None"""
    contacts = decode_contacts(data)
    return contacts[0] if contacts else None


def format_instant(value: datetime) -> str:
    return as_utc(value).strftime(ISO_UTC_FORMAT)


def parse_instant(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 or compact UTC timestamp, None when it is neither"""
    value = value.strip()
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return datetime.strptime(value, BASIC_UTC_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp: {value}")
        return None


def _contact_from_card(card: Any) -> Optional[Contact]:
    first_name, last_name = _names(card)
    phone, mobile_phone = _phones(card)
    next_meeting = _value(card, NEXT_MEETING_PROPERTY)

    try:
        return Contact(
            uid=_value(card, "UID"),
            first_name=first_name,
            last_name=last_name,
            email=_value(card, "EMAIL"),
            phone=phone,
            mobile_phone=mobile_phone,
            organization=_organization(card),
            next_meeting=parse_instant(next_meeting) if next_meeting else None,
            notes=_value(card, "NOTE"),
        )
    except ValidationError as e:
        logger.warning(f"Skipping incomplete vCard {_value(card, 'UID')}: {e.error_count()} invalid fields")
        return None


def _names(card: Any):
    """(first, last) from N, falling back to splitting FN on the first space"""
    name = _first(card.get("N"))
    if isinstance(name, vN):
        return name.fields.given, name.fields.family

    full_name = _value(card, "FN")
    if full_name is None:
        return None, None
    first_name, _, last_name = full_name.strip().partition(" ")
    return first_name, last_name.strip()


def _phones(card: Any):
    """(work, mobile) numbers; an untyped TEL counts as the work number"""
    phone = None
    mobile_phone = None
    untyped = None

    for tel in _as_list(card.get("TEL")):
        number = str(tel)
        if number.lower().startswith("tel:"):
            number = number[4:]
        types = {
            part.strip().lower()
            for param in _as_list(tel.params.get("TYPE"))
            for part in param.split(",")
        }
        if types & MOBILE_TYPES:
            mobile_phone = mobile_phone or number
        elif WORK_TYPE in types:
            phone = phone or number
        else:
            untyped = untyped or number

    return phone or untyped, mobile_phone


def _organization(card: Any) -> Optional[str]:
    org = _first(card.get("ORG"))
    if org is None:
        return None
    if isinstance(org, vOrg):
        return ";".join(org.fields)
    return str(org)


def _value(card: Any, name: str) -> Optional[str]:
    value = _first(card.get(name))
    return str(value) if value is not None else None


def _first(value: Any) -> Any:
    values = _as_list(value)
    return values[0] if values else None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
