"""
Contacts API Router

REST endpoints that translate JSON contacts into vCard resources on the
address book server and notify webhooks about the changes.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from caldav_bridge.api.dependencies import (
    contact_path, get_id_generator, get_notifier, get_settings, get_store, resource_id
)
from caldav_bridge.codec.vcard_codec import decode_contact, decode_contacts, encode_contact
from caldav_bridge.services.contact import Contact
from caldav_bridge.services.radicale_store import VCARD_CONTENT_TYPE, RadicaleStore, StoreUnavailableError
from caldav_bridge.services.webhooks import WebhookEventType, WebhookNotifier, WebhookResourceType
from caldav_bridge.utils.config import Settings
from caldav_bridge.utils.identifiers import IdentifierGenerator

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("")
async def list_contacts(
    store: RadicaleStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """Decode every contact of the address book export"""
    try:
        data = await store.read(settings.CONTACTS_EXPORT_PATH)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if data is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch contacts"
        )
    return {"contacts": [contact.to_response() for contact in decode_contacts(data)]}


@router.get("/{contact_id}")
async def get_contact(
    contact_id: str = resource_id("Contact resource id"),
    store: RadicaleStore = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """Fetch and decode a single contact"""
    try:
        data = await store.read(contact_path(settings, contact_id))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    contact = decode_contact(data)
    return {"contact": contact.to_response() if contact else {}}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contact(
    contact: Contact,
    store: RadicaleStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
    ids: IdentifierGenerator = Depends(get_id_generator),
    settings: Settings = Depends(get_settings)
):
    """Create a contact"""
    contact_id = ids.new_id()
    try:
        created = await store.write(contact_path(settings, contact_id), VCARD_CONTENT_TYPE, encode_contact(contact, ids))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not created:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to create contact")

    logger.info(f"Created contact {contact_id}")
    contact_data = contact.to_response()
    await notifier.notify(
        WebhookResourceType.CONTACT, WebhookEventType.CREATED, {"contact": contact_data, "id": contact_id}
    )

    return {"message": "Contact created successfully", "id": contact_id, "contact": contact_data}


@router.put("/{contact_id}")
async def update_contact(
    contact: Contact,
    contact_id: str = resource_id("Contact resource id"),
    store: RadicaleStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
    ids: IdentifierGenerator = Depends(get_id_generator),
    settings: Settings = Depends(get_settings)
):
    """Replace a contact"""
    try:
        updated = await store.write(contact_path(settings, contact_id), VCARD_CONTENT_TYPE, encode_contact(contact, ids))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    logger.info(f"Updated contact {contact_id}")
    contact_data = contact.to_response()
    await notifier.notify(
        WebhookResourceType.CONTACT, WebhookEventType.UPDATED, {"contact": contact_data, "id": contact_id}
    )

    return {"message": "Contact updated successfully", "contact": contact_data}


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str = resource_id("Contact resource id"),
    store: RadicaleStore = Depends(get_store),
    notifier: WebhookNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings)
):
    """Delete a contact and report it as cancelled"""
    path = contact_path(settings, contact_id)
    try:
        previous = await store.read(path)
        deleted = await store.delete(path)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    logger.info(f"Deleted contact {contact_id}")
    if previous:
        previous_contact = decode_contact(previous)
        await notifier.notify(
            WebhookResourceType.CONTACT,
            WebhookEventType.CANCELLED,
            {"id": contact_id, "contact": previous_contact.to_response() if previous_contact else {}}
        )

    return {"message": "Contact deleted successfully"}
