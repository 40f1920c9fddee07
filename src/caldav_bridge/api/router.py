from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from caldav_bridge.auth.api_key import require_api_key

# Import the resource routers
from caldav_bridge.api.contact_router import router as contact_router
from caldav_bridge.api.event_router import router as event_router
from caldav_bridge.api.webhook_router import router as webhook_router

# Initialize API router; every /api route needs the API key
router = APIRouter(dependencies=[Depends(require_api_key)])

router.include_router(webhook_router)
router.include_router(event_router)
router.include_router(contact_router)

# Simple route for testing
@router.get("/ping")
async def ping():
    """Authenticated health check endpoint"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
