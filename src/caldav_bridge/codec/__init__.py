from caldav_bridge.codec.icalendar_codec import decode_event, decode_events, encode_event
from caldav_bridge.codec.vcard_codec import decode_contact, decode_contacts, encode_contact

__all__ = [
    "encode_event",
    "decode_event",
    "decode_events",
    "encode_contact",
    "decode_contact",
    "decode_contacts",
]
