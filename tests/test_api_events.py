import pytest

from caldav_bridge.codec.icalendar_codec import decode_event, encode_event
from caldav_bridge.codec.vcard_codec import decode_contact
from caldav_bridge.services.calendar_event import CalendarEvent
from caldav_bridge.services.radicale_store import CALENDAR_CONTENT_TYPE, VCARD_CONTENT_TYPE
from caldav_bridge.services.webhooks import WebhookEventType, WebhookResourceType
from caldav_bridge.utils.identifiers import SequenceGenerator


@pytest.fixture
def event_body():
    return {
        "summary": "Meeting",
        "startDate": "2024-03-15T10:00:00Z",
        "endDate": "2024-03-15T11:00:00Z",
        "participants": [
            {"email": "jane@example.com", "name": "Jane Smith"},
            {"email": "bob@example.com"}
        ]
    }


def stored_event(store, event_id, summary="Meeting", start="2024-03-15T10:00:00Z", end="2024-03-15T11:00:00Z"):
    """Put an encoded event into the fake store"""
    event = CalendarEvent(summary=summary, start_date=start, end_date=end)
    store.resources[f"calendar/{event_id}.ics"] = encode_event(event, SequenceGenerator("stored"))
    return event


def test_create_event(client, auth, store, notifier, event_body):
    """Test creating an event"""
    response = client.post("/api/events", json=event_body, headers=auth)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Event created successfully"
    assert body["id"] == "id-1"
    assert body["event"]["summary"] == "Meeting"
    assert body["event"]["startDate"] == "2024-03-15T10:00:00Z"
    assert "createContact" not in body["event"]
    assert body["subscriptionUrls"] == {
        "full": "/calendar/id-1/full.ics",
        "freebusy": "/calendar/id-1/freebusy.ics"
    }

    # The record is stored under the resource id with a UID of its own
    record = store.resources["calendar/id-1.ics"]
    assert store.content_types["calendar/id-1.ics"] == CALENDAR_CONTENT_TYPE
    assert "UID:id-2" in record
    assert decode_event(record).summary == "Meeting"

    notifier.notify.assert_awaited_once_with(
        WebhookResourceType.CALENDAR, WebhookEventType.CREATED, {"event": body["event"], "id": "id-1"}
    )


def test_create_event_with_participant_contacts(client, auth, store, event_body):
    """Test that createContact stores a contact for every participant"""
    event_body["createContact"] = True

    response = client.post("/api/events", json=event_body, headers=auth)

    assert response.status_code == 201
    contacts = {
        path: decode_contact(record)
        for path, record in store.resources.items()
        if path.startswith("contacts/")
    }
    assert len(contacts) == 2
    assert all(store.content_types[path] == VCARD_CONTENT_TYPE for path in contacts)

    by_email = {contact.email: contact for contact in contacts.values()}
    jane = by_email["jane@example.com"]
    assert (jane.first_name, jane.last_name) == ("Jane", "Smith")
    assert jane.notes == "Created from event: Meeting"
    assert jane.next_meeting.isoformat() == "2024-03-15T10:00:00+00:00"

    # Without a name the local part of the address is used
    bob = by_email["bob@example.com"]
    assert (bob.first_name, bob.last_name) == ("bob", "")


def test_create_event_rejected_by_store(client, auth, store, notifier, event_body):
    """Test the response when the store refuses the record"""
    store.reject_writes = True

    response = client.post("/api/events", json=event_body, headers=auth)

    assert response.status_code == 400
    assert response.json() == {"error": "Failed to create event"}
    notifier.notify.assert_not_awaited()


def test_create_event_store_unavailable(client, auth, store, event_body):
    """Test the response when the store cannot be reached"""
    store.unavailable = True

    response = client.post("/api/events", json=event_body, headers=auth)

    assert response.status_code == 400
    assert "unavailable" in response.json()["error"]


@pytest.mark.parametrize("field,value", [
    ("summary", None),
    ("startDate", "not a date"),
    ("participants", [{"email": "not-an-address"}]),
])
def test_create_event_validation(client, auth, store, event_body, field, value):
    """Test that invalid bodies are rejected before anything is stored"""
    if value is None:
        del event_body[field]
    else:
        event_body[field] = value

    response = client.post("/api/events", json=event_body, headers=auth)

    assert response.status_code == 400
    assert "error" in response.json()
    assert store.resources == {}


def test_list_events(client, auth, store):
    """Test decoding the calendar export"""
    first = encode_event(CalendarEvent(summary="One", start_date="2024-03-15T10:00:00Z", end_date="2024-03-15T11:00:00Z"))
    second = encode_event(CalendarEvent(summary="Two", start_date="2024-03-16T10:00:00Z", end_date="2024-03-16T11:00:00Z"))
    store.resources["calendar.ics"] = first + second

    response = client.get("/api/events", headers=auth)

    assert response.status_code == 200
    assert [event["summary"] for event in response.json()["events"]] == ["One", "Two"]


def test_list_events_without_export(client, auth):
    """Test the response when the export cannot be read"""
    response = client.get("/api/events", headers=auth)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch events"}


def test_get_event(client, auth, store):
    """Test fetching a single event"""
    stored_event(store, "abc")

    response = client.get("/api/events/abc", headers=auth)

    assert response.status_code == 200
    event = response.json()["event"]
    assert event["summary"] == "Meeting"
    assert event["uid"] == "stored-1"


def test_get_event_not_found(client, auth):
    response = client.get("/api/events/missing", headers=auth)

    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}


def test_get_event_undecodable(client, auth, store):
    """Test that a record that cannot be decoded is returned as an empty object"""
    store.resources["calendar/abc.ics"] = "garbage"

    response = client.get("/api/events/abc", headers=auth)

    assert response.status_code == 200
    assert response.json() == {"event": {}}


def test_update_event(client, auth, store, notifier, event_body):
    """Test that changing only the summary is an update"""
    stored_event(store, "abc", summary="Old title")
    event_body["summary"] = "New title"

    response = client.put("/api/events/abc", json=event_body, headers=auth)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Event updated successfully"
    assert body["event"]["summary"] == "New title"
    assert decode_event(store.resources["calendar/abc.ics"]).summary == "New title"
    notifier.notify.assert_awaited_once_with(
        WebhookResourceType.CALENDAR, WebhookEventType.UPDATED, {"event": body["event"], "id": "abc"}
    )


def test_update_event_reschedule(client, auth, store, notifier, event_body):
    """Test that moving the start or end is reported as a reschedule"""
    stored_event(store, "abc")
    event_body["startDate"] = "2024-03-15T14:00:00+02:00"  # 12:00 UTC
    event_body["endDate"] = "2024-03-15T13:00:00Z"

    response = client.put("/api/events/abc", json=event_body, headers=auth)

    assert response.status_code == 200
    args = notifier.notify.call_args.args
    assert args[1] == WebhookEventType.RESCHEDULED
    assert args[2]["event"]["startDate"] == "2024-03-15T12:00:00Z"


def test_update_event_same_instant_other_zone(client, auth, store, notifier, event_body):
    """Test that the same instant written in another zone is not a reschedule"""
    stored_event(store, "abc")
    event_body["startDate"] = "2024-03-15T12:00:00+02:00"
    event_body["endDate"] = "2024-03-15T13:00:00+02:00"

    client.put("/api/events/abc", json=event_body, headers=auth)

    assert notifier.notify.call_args.args[1] == WebhookEventType.UPDATED


def test_update_missing_event_is_created(client, auth, store, notifier, event_body):
    """Test that updating an unknown id writes the record as an update"""
    response = client.put("/api/events/new-one", json=event_body, headers=auth)

    assert response.status_code == 200
    assert "calendar/new-one.ics" in store.resources
    assert notifier.notify.call_args.args[1] == WebhookEventType.UPDATED


def test_update_event_rejected_by_store(client, auth, store, event_body):
    store.reject_writes = True

    response = client.put("/api/events/abc", json=event_body, headers=auth)

    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}


def test_delete_event(client, auth, store, notifier):
    """Test that deleting an event notifies cancellation with the previous record"""
    stored_event(store, "abc")

    response = client.delete("/api/events/abc", headers=auth)

    assert response.status_code == 200
    assert response.json() == {"message": "Event deleted successfully"}
    assert store.resources == {}
    args = notifier.notify.call_args.args
    assert args[:2] == (WebhookResourceType.CALENDAR, WebhookEventType.CANCELLED)
    assert args[2]["id"] == "abc"
    assert args[2]["event"]["summary"] == "Meeting"


def test_delete_missing_event(client, auth, notifier):
    response = client.delete("/api/events/missing", headers=auth)

    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}
    notifier.notify.assert_not_awaited()


def test_delete_event_store_unavailable(client, auth, store):
    store.unavailable = True

    response = client.delete("/api/events/abc", headers=auth)

    assert response.status_code == 500


@pytest.mark.parametrize("event_id", ["..", ".hidden", "a b", "a%2Fb"])
def test_invalid_event_id(client, auth, event_id):
    """Test that ids that are not a single safe path segment are rejected"""
    response = client.get(f"/api/events/{event_id}", headers=auth)

    assert response.status_code in (400, 404)
    assert "error" in response.json()
