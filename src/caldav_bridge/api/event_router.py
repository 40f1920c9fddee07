"""
Calendar Events API Router

REST endpoints that translate JSON events into iCalendar resources on the
calendar server and notify webhooks about the changes.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from caldav_bridge.api.dependencies import (
    contact_path, event_path, get_id_generator, get_notifier, get_settings, get_store, resource_id
)
from caldav_bridge.codec.icalendar_codec import decode_event, decode_events, encode_event
from caldav_bridge.codec.vcard_codec import encode_contact
from caldav_bridge.services.calendar_event import CalendarEvent
from caldav_bridge.services.contact import Contact
from caldav_bridge.services.radicale_store import (
    CALENDAR_CONTENT_TYPE, VCARD_CONTENT_TYPE, RadicaleStore, StoreUnavailableError
)
from caldav_bridge.services.webhooks import WebhookEventType, WebhookNotifier, WebhookResourceType
from caldav_bridge.utils.config import Settings
from caldav_bridge.utils.identifiers import IdentifierGenerator

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
async def list_events(
    store: RadicaleStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """Decode every event of the calendar export"""
    try:
        data = await store.read(settings.CALENDAR_EXPORT_PATH)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if data is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch events"
        )
    return {"events": [event.to_response() for event in decode_events(data)]}


@router.get("/{event_id}")
async def get_event(
    event_id: str = resource_id("Event resource id"),
    store: RadicaleStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """Fetch and decode a single event"""
    try:
        data = await store.read(event_path(settings, event_id))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    event = decode_event(data)
    return {"event": event.to_response() if event else {}}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    event: CalendarEvent,
    store: RadicaleStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
    ids: IdentifierGenerator = Depends(get_id_generator),
    settings: Settings = Depends(get_settings)
):
    """Create an event, optionally creating a contact for every participant"""
    event_id = ids.new_id()
    try:
        created = await store.write(event_path(settings, event_id), CALENDAR_CONTENT_TYPE, encode_event(event, ids))
        if not created:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to create event")

        if event.create_contact:
            await _create_participant_contacts(event, store, ids, settings)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Created event {event_id}")
    event_data = event.to_response()
    await notifier.notify(
        WebhookResourceType.CALENDAR, WebhookEventType.CREATED, {"event": event_data, "id": event_id}
    )

    return {
        "message": "Event created successfully",
        "id": event_id,
        "event": event_data,
        "subscriptionUrls": {
            "full": f"/calendar/{event_id}/full.ics",
            "freebusy": f"/calendar/{event_id}/freebusy.ics"
        }
    }


@router.put("/{event_id}")
async def update_event(
    event: CalendarEvent,
    event_id: str = resource_id("Event resource id"),
    store: RadicaleStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
    ids: IdentifierGenerator = Depends(get_id_generator),
    settings: Settings = Depends(get_settings)
):
    """Replace an event; a changed start or end is reported as a reschedule"""
    path = event_path(settings, event_id)
    try:
        previous = await store.read(path)
        previous_event = decode_event(previous) if previous else None
        rescheduled = previous_event is not None and previous_event.dates_differ(event)

        updated = await store.write(path, CALENDAR_CONTENT_TYPE, encode_event(event, ids))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    change = WebhookEventType.RESCHEDULED if rescheduled else WebhookEventType.UPDATED
    logger.info(f"Event {event_id} {change.value}")
    event_data = event.to_response()
    await notifier.notify(WebhookResourceType.CALENDAR, change, {"event": event_data, "id": event_id})

    return {"message": "Event updated successfully", "event": event_data}


@router.delete("/{event_id}")
async def delete_event(
    event_id: str = resource_id("Event resource id"),
    store: RadicaleStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings)
):
    """Delete an event and report it as cancelled"""
    path = event_path(settings, event_id)
    try:
        previous = await store.read(path)
        deleted = await store.delete(path)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    logger.info(f"Deleted event {event_id}")
    if previous:
        previous_event = decode_event(previous)
        await notifier.notify(
            WebhookResourceType.CALENDAR,
            WebhookEventType.CANCELLED,
            {"id": event_id, "event": previous_event.to_response() if previous_event else {}}
        )

    return {"message": "Event deleted successfully"}


async def _create_participant_contacts(
    event: CalendarEvent,
    store: RadicaleStore,
    ids: IdentifierGenerator,
    settings: Settings
):
    for participant in event.participants:
        contact = Contact.from_participant(participant.email, participant.name, event)
        contact_id = ids.new_id()
        created = await store.write(contact_path(settings, contact_id), VCARD_CONTENT_TYPE, encode_contact(contact, ids))
        if created:
            logger.info(f"Created contact {contact_id} for participant {participant.email}")
        else:
            logger.warning(f"Could not create contact for participant {participant.email}")
