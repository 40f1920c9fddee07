"""
Webhook Registration API Router
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from caldav_bridge.api.dependencies import get_id_generator, get_registry
from caldav_bridge.services.webhooks import Webhook
from caldav_bridge.storage.webhook_registry import WebhookRegistry
from caldav_bridge.utils.identifiers import IdentifierGenerator

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_webhook(
    webhook: Webhook,
    registry: WebhookRegistry = Depends(get_registry),
    ids: IdentifierGenerator = Depends(get_id_generator)
):
    """Register a webhook for calendar or contact changes"""
    webhook_id = ids.new_id()
    await registry.register(webhook_id, webhook)
    logger.info(f"Registered webhook {webhook_id} for {webhook.type.value}/{webhook.event.value}")

    return {
        "id": webhook_id,
        "message": "Webhook registered successfully",
        "webhook": webhook.to_response()
    }


@router.get("")
async def list_webhooks(registry: WebhookRegistry = Depends(get_registry)):
    """List the webhooks that have not expired"""
    webhooks = await registry.list()
    return {
        "webhooks": [
            {"id": webhook_id, **webhook.to_response()}
            for webhook_id, webhook in webhooks.items()
        ]
    }


@router.delete("/{webhook_id}")
async def delete_webhook(webhook_id: str, registry: WebhookRegistry = Depends(get_registry)):
    """Remove a webhook registration"""
    if not await registry.remove(webhook_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")

    logger.info(f"Deleted webhook {webhook_id}")
    return {"message": "Webhook deleted successfully"}
