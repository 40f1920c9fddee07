import pytest


@pytest.fixture
def webhook_body():
    return {
        "url": "https://automation.example.com/",
        "event": "rescheduled",
        "type": "calendar",
        "targetUrl": "https://hooks.example.com/reschedules"
    }


def test_register_webhook(client, auth, registry, webhook_body):
    """Test registering a webhook"""
    response = client.post("/api/webhooks", json=webhook_body, headers=auth)

    assert response.status_code == 201
    assert response.json() == {
        "id": "id-1",
        "message": "Webhook registered successfully",
        "webhook": webhook_body
    }
    assert "id-1" in registry._entries


@pytest.mark.parametrize("field,value", [
    ("event", "deleted"),
    ("type", "task"),
    ("targetUrl", "ftp://hooks.example.com"),
])
def test_register_invalid_webhook(client, auth, registry, webhook_body, field, value):
    webhook_body[field] = value

    response = client.post("/api/webhooks", json=webhook_body, headers=auth)

    assert response.status_code == 400
    assert "error" in response.json()
    assert registry._entries == {}


def test_list_webhooks(client, auth, webhook_body):
    client.post("/api/webhooks", json=webhook_body, headers=auth)

    response = client.get("/api/webhooks", headers=auth)

    assert response.status_code == 200
    assert response.json() == {"webhooks": [{"id": "id-1", **webhook_body}]}


def test_delete_webhook(client, auth, webhook_body):
    """Test removing a registration"""
    client.post("/api/webhooks", json=webhook_body, headers=auth)

    response = client.delete("/api/webhooks/id-1", headers=auth)

    assert response.status_code == 200
    assert response.json() == {"message": "Webhook deleted successfully"}
    assert client.get("/api/webhooks", headers=auth).json() == {"webhooks": []}


def test_delete_unknown_webhook(client, auth):
    response = client.delete("/api/webhooks/unknown", headers=auth)

    assert response.status_code == 404
    assert response.json() == {"error": "Webhook not found"}
