"""
Calendar Subscription Router

Passes iCalendar feeds from the calendar server through to subscribers. The
full calendar needs the API key; free/busy data is public, matching the
access rights configured on the calendar server.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status

from caldav_bridge.api.dependencies import get_store, resource_id
from caldav_bridge.auth.api_key import require_api_key
from caldav_bridge.services.radicale_store import CALENDAR_CONTENT_TYPE, RadicaleStore, StoreUnavailableError

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["subscriptions"])


@router.get("/{calendar_id}/full.ics", dependencies=[Depends(require_api_key)])
async def full_calendar(
    calendar_id: str = resource_id("Calendar id"),
    store: RadicaleStore = Depends(get_store)
):
    """Full calendar feed"""
    return await _feed(store, f"{calendar_id}/calendar.ics", "Failed to fetch calendar")


@router.get("/{calendar_id}/freebusy.ics")
async def freebusy_calendar(
    calendar_id: str = resource_id("Calendar id"),
    store: RadicaleStore = Depends(get_store)
):
    """Free/busy feed, available without an API key"""
    return await _feed(store, f"{calendar_id}/freebusy.ics", "Failed to fetch free/busy information")


async def _feed(store: RadicaleStore, path: str, failure_message: str) -> Response:
    try:
        data = await store.read(path)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if data is None:
        logger.warning(f"{failure_message}: {path}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure_message)
    return Response(content=data, media_type=CALENDAR_CONTENT_TYPE)
