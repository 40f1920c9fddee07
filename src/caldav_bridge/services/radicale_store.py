"""
Radicale Store

Minimal text-transfer client for the external CalDAV/CardDAV server. The
bridge never speaks the DAV protocol itself: it PUTs, GETs and DELETEs whole
iCalendar/vCard resources by path.
"""

import asyncio
import logging
from typing import Optional, Tuple

import aiohttp
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

# Set up logging
logger = logging.getLogger(__name__)

CALENDAR_CONTENT_TYPE = "text/calendar; charset=utf-8"
VCARD_CONTENT_TYPE = "text/vcard; charset=utf-8"


class StoreUnavailableError(Exception):
    """The external store could not be reached"""


class RadicaleStore:
    """
    Client for a Radicale (or any WebDAV) server holding the calendar and
    address book collections
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """Initialize the store client"""
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.http_session = session
        self._owns_session = session is None

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def write(self, path: str, content_type: str, body: str) -> bool:
        """PUT a resource; True when the server accepted it"""
        status, _ = await self._request(
            "PUT",
            path,
            data=body.encode("utf-8"),
            headers={"Content-Type": content_type}
        )
        if status >= 300:
            logger.warning(f"Store rejected PUT {path} with status {status}")
            return False
        return True

    async def read(self, path: str) -> Optional[str]:
        """GET a resource; None when it does not exist or cannot be read"""
        status, text = await self._request("GET", path)
        if status >= 300:
            logger.info(f"Store returned status {status} for GET {path}")
            return None
        return text

    async def delete(self, path: str) -> bool:
        """DELETE a resource; True when the server removed it"""
        status, _ = await self._request("DELETE", path)
        if status >= 300:
            logger.warning(f"Store rejected DELETE {path} with status {status}")
            return False
        return True

    async def close(self):
        """Close the HTTP session if this client created it"""
        if self.http_session and self._owns_session:
            await self.http_session.close()
        self.http_session = None

    async def _request(self, method: str, path: str, **kwargs) -> Tuple[int, str]:
        try:
            return await self._send(method, path, **kwargs)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Store request {method} {path} failed: {e!r}")
            raise StoreUnavailableError(f"Calendar server unavailable: {e!r}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError)),
        reraise=True
    )
    async def _send(self, method: str, path: str, **kwargs) -> Tuple[int, str]:
        session = self._get_session()
        async with session.request(method, self.url_for(path), timeout=self.timeout, **kwargs) as response:
            return response.status, await response.text()

    def _get_session(self) -> aiohttp.ClientSession:
        if self.http_session is None or self.http_session.closed:
            self.http_session = aiohttp.ClientSession()
            self._owns_session = True
        return self.http_session
