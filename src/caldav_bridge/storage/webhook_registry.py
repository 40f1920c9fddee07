"""
Webhook Registry

Storage for webhook registrations. Registrations expire after a TTL so
abandoned webhooks disappear on their own. Two backends are provided: an
in-process dictionary and Redis, selected with the WEBHOOK_STORE setting.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis

from caldav_bridge.services.webhooks import Webhook
from caldav_bridge.utils.config import Settings

# Set up logging
logger = logging.getLogger(__name__)


class WebhookRegistry(ABC):
    """Interface for webhook registration storage"""

    @abstractmethod
    async def register(self, webhook_id: str, webhook: Webhook) -> None:
        """Store a webhook under the given id"""

    @abstractmethod
    async def get(self, webhook_id: str) -> Optional[Webhook]:
        """Return a webhook, or None if it is unknown or expired"""

    @abstractmethod
    async def list(self) -> Dict[str, Webhook]:
        """Return all live webhooks keyed by id"""

    @abstractmethod
    async def remove(self, webhook_id: str) -> bool:
        """Delete a webhook; False when it did not exist"""

    async def close(self) -> None:
        """Release any connections held by the registry"""


class InMemoryWebhookRegistry(WebhookRegistry):
    """Process-local registry with per-entry expiry"""

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Webhook]] = {}

    async def register(self, webhook_id: str, webhook: Webhook) -> None:
        self._entries[webhook_id] = (self._clock() + self.ttl_seconds, webhook)

    async def get(self, webhook_id: str) -> Optional[Webhook]:
        self._purge_expired()
        entry = self._entries.get(webhook_id)
        return entry[1] if entry else None

    async def list(self) -> Dict[str, Webhook]:
        self._purge_expired()
        return {webhook_id: webhook for webhook_id, (_, webhook) in self._entries.items()}

    async def remove(self, webhook_id: str) -> bool:
        self._purge_expired()
        return self._entries.pop(webhook_id, None) is not None

    def _purge_expired(self):
        now = self._clock()
        expired = [webhook_id for webhook_id, (expires, _) in self._entries.items() if expires <= now]
        for webhook_id in expired:
            del self._entries[webhook_id]


class RedisWebhookRegistry(WebhookRegistry):
    """Registry shared between processes through Redis keys with an expiry"""

    KEY_PREFIX = "webhook:"

    def __init__(self, redis_client, ttl_seconds: int = 3600):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisWebhookRegistry":
        client = aioredis.from_url(
            f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
            password=settings.REDIS_PASSWORD or None,
            encoding="utf-8",
            decode_responses=True
        )
        return cls(client, ttl_seconds=settings.WEBHOOK_TTL_SECONDS)

    def _key(self, webhook_id: str) -> str:
        return f"{self.KEY_PREFIX}{webhook_id}"

    async def register(self, webhook_id: str, webhook: Webhook) -> None:
        await self.redis.set(
            self._key(webhook_id),
            webhook.model_dump_json(by_alias=True),
            ex=self.ttl_seconds
        )

    async def get(self, webhook_id: str) -> Optional[Webhook]:
        raw = await self.redis.get(self._key(webhook_id))
        return Webhook.model_validate_json(raw) if raw else None

    async def list(self) -> Dict[str, Webhook]:
        webhooks = {}
        async for key in self.redis.scan_iter(match=f"{self.KEY_PREFIX}*"):
            raw = await self.redis.get(key)
            # The key may expire between SCAN and GET
            if raw:
                webhooks[key[len(self.KEY_PREFIX):]] = Webhook.model_validate_json(raw)
        return webhooks

    async def remove(self, webhook_id: str) -> bool:
        return await self.redis.delete(self._key(webhook_id)) > 0

    async def close(self) -> None:
        await self.redis.aclose()


def create_webhook_registry(settings: Settings) -> WebhookRegistry:
    """Build the registry backend named by WEBHOOK_STORE"""
    if settings.WEBHOOK_STORE == "redis":
        logger.info(f"Using Redis webhook registry at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return RedisWebhookRegistry.from_settings(settings)
    logger.info("Using in-memory webhook registry")
    return InMemoryWebhookRegistry(ttl_seconds=settings.WEBHOOK_TTL_SECONDS)
