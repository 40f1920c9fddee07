"""
Webhook Notifications

Models for webhook registrations and the notifier that fans a change out to
every matching registration.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field

# Set up logging
logger = logging.getLogger(__name__)


class WebhookEventType(str, Enum):
    """Changes a webhook can subscribe to"""
    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class WebhookResourceType(str, Enum):
    """Kind of record a webhook watches"""
    CALENDAR = "calendar"
    CONTACT = "contact"


class Webhook(BaseModel):
    """Webhook registration as submitted by the automation platform"""
    model_config = ConfigDict(populate_by_name=True)

    url: AnyHttpUrl
    event: WebhookEventType
    type: WebhookResourceType
    target_url: AnyHttpUrl = Field(alias="targetUrl")

    def matches(self, resource_type: str, event_type: str) -> bool:
        return self.type == resource_type and self.event == event_type

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WebhookNotifier:
    """
    Delivers change notifications to registered webhooks.

    Every matching webhook receives a JSON POST with an X-Webhook-ID header.
    Deliveries run concurrently and a failed delivery is only logged, it
    never fails the API request that triggered it.
    """

    def __init__(self, registry, timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        """Initialize the notifier with a webhook registry"""
        self.registry = registry
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.http_session = session
        self._owns_session = session is None

    async def notify(self, resource_type: str, event_type: str, data: Dict[str, Any]) -> int:
        """Notify matching webhooks and return how many accepted the delivery"""
        try:
            registered = await self.registry.list()
        except Exception as e:
            logger.error(f"Could not load webhooks for {resource_type}/{event_type}: {e}")
            return 0

        matching = [
            (webhook_id, webhook)
            for webhook_id, webhook in registered.items()
            if webhook.matches(resource_type, event_type)
        ]
        if not matching:
            return 0

        logger.info(f"Notifying {len(matching)} webhook(s) of {resource_type}/{event_type}")
        results = await asyncio.gather(
            *(self._deliver(webhook_id, webhook, data) for webhook_id, webhook in matching)
        )
        return sum(1 for delivered in results if delivered)

    async def close(self):
        """Close the HTTP session if this notifier created it"""
        if self.http_session and self._owns_session:
            await self.http_session.close()
        self.http_session = None

    async def _deliver(self, webhook_id: str, webhook: Webhook, data: Dict[str, Any]) -> bool:
        try:
            session = self._get_session()
            async with session.post(
                str(webhook.target_url),
                json=data,
                headers={
                    "Content-Type": "application/json",
                    "X-Webhook-ID": webhook_id
                },
                timeout=self.timeout
            ) as response:
                if response.status >= 400:
                    logger.warning(f"Webhook {webhook_id} responded with status {response.status}")
                    return False
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to notify webhook {webhook_id}: {e!r}")
            return False

    def _get_session(self) -> aiohttp.ClientSession:
        if self.http_session is None or self.http_session.closed:
            self.http_session = aiohttp.ClientSession()
            self._owns_session = True
        return self.http_session
