"""
Request-scoped access to the collaborators created by create_app.

Everything lives on app.state so each application instance (and each test)
carries its own store, registry and identifier generator.
"""

from fastapi import Path, Request

from caldav_bridge.services.radicale_store import RadicaleStore
from caldav_bridge.services.webhooks import WebhookNotifier
from caldav_bridge.storage.webhook_registry import WebhookRegistry
from caldav_bridge.utils.config import Settings
from caldav_bridge.utils.identifiers import IdentifierGenerator

# Single path segment, no leading dot
RESOURCE_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._@-]*$"


def resource_id(description: str):
    return Path(..., pattern=RESOURCE_ID_PATTERN, description=description)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> RadicaleStore:
    return request.app.state.store


def get_registry(request: Request) -> WebhookRegistry:
    return request.app.state.webhook_registry


def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier


def get_id_generator(request: Request) -> IdentifierGenerator:
    return request.app.state.id_generator


def event_path(settings: Settings, event_id: str) -> str:
    return f"{settings.CALENDAR_COLLECTION}/{event_id}.ics"


def contact_path(settings: Settings, contact_id: str) -> str:
    return f"{settings.CONTACTS_COLLECTION}/{contact_id}.vcf"
