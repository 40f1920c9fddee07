import logging
import secrets
from typing import Optional
from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

# Set up logging
logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(request: Request, api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    Reject requests whose X-API-Key header does not match the configured key.

    When no API_KEY is configured every request is rejected.
    """
    expected = request.app.state.settings.API_KEY
    if not api_key or not expected or not secrets.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(f"Rejected request with invalid API key: {request.method} {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )
    return api_key
