"""Object store access: the abstract interface and an aiohttp implementation."""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

import aiohttp

from rangefetch.config.settings import Settings
from rangefetch.logs.logger import get_logger
from rangefetch.utils.constants import (
    DEFAULT_USER_AGENT, ERROR_ACCESS_DENIED, ERROR_INVALID_RANGE, ERROR_NOT_FOUND,
    STREAM_READ_SIZE
)
from rangefetch.utils.helpers import parse_content_range
from .exceptions import (
    AccessDeniedError, InvalidRangeError, NotFoundError, ObjectStoreError,
    ProtocolError, TransientError
)
from .models import ByteRange, ObjectLocator, ObjectMetadata

logger = get_logger(__name__)


class ObjectStore(ABC):
    """The two calls the transfer core needs from a remote object store."""

    @abstractmethod
    async def head(self, locator: ObjectLocator) -> ObjectMetadata:
        """Return size and version tag of an object."""

    @abstractmethod
    async def get_range(self, locator: ObjectLocator, byte_range: ByteRange) -> bytes:
        """Return the bytes of ``byte_range``; may be shorter if the store misbehaves."""

    async def close(self) -> None:
        """Release any held connections."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _raise_for_status(status: int, reason: Optional[str], headers, locator: ObjectLocator) -> None:
    """Map an HTTP status onto the error taxonomy."""
    if 200 <= status < 300:
        return
    if status == 404:
        raise NotFoundError(f"{ERROR_NOT_FOUND}: {locator}")
    if status in (401, 403):
        raise AccessDeniedError(f"{ERROR_ACCESS_DENIED}: {locator}", status_code=status)
    if status == 416:
        raise InvalidRangeError(f"{ERROR_INVALID_RANGE}: {locator}")
    if status == 429:
        retry_after = headers.get('Retry-After')
        try:
            retry_after_seconds = float(retry_after) if retry_after else None
        except ValueError:
            retry_after_seconds = None
        raise TransientError(
            "Rate limit exceeded", status_code=status, retry_after=retry_after_seconds
        )
    if status >= 500:
        raise TransientError(f"Server error {status}: {reason}", status_code=status)
    raise ObjectStoreError(f"HTTP {status}: {reason}", status_code=status)


class HttpObjectStore(ObjectStore):
    """Object store reached over HTTP with path-style URLs.

    Requests go to ``{endpoint_url}/{bucket}/{key}``. Authentication, if any,
    is carried by ``headers`` or by the endpoint itself (pre-signed URLs,
    public buckets, an authenticating proxy).
    """

    def __init__(
        self,
        endpoint_url: str,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[dict] = None
    ):
        """Initialize the store.

        Args:
            endpoint_url: Base URL of the store
            settings: Application settings (for timeouts)
            session: Optional externally managed session
            headers: Extra headers sent on every request
        """
        self.endpoint_url = endpoint_url.rstrip('/')
        self.request_timeout = settings.request_timeout if settings else 60.0
        self.session = session
        self._owns_session = session is None
        self.headers = {'User-Agent': DEFAULT_USER_AGENT, **(headers or {})}

    def object_url(self, locator: ObjectLocator) -> str:
        return f"{self.endpoint_url}/{quote(locator.bucket, safe='')}/{quote(locator.key)}"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if not self.session:
            self.session = aiohttp.ClientSession(headers=self.headers)
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        """Close the HTTP session if this store created it."""
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def head(self, locator: ObjectLocator) -> ObjectMetadata:
        session = await self._ensure_session()
        url = self.object_url(locator)
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        try:
            async with session.head(url, timeout=timeout, allow_redirects=True) as response:
                logger.debug(f"HEAD {url} -> {response.status}")
                _raise_for_status(response.status, response.reason, response.headers, locator)

                content_length = response.headers.get('Content-Length')
                if content_length is None:
                    raise ProtocolError(f"HEAD {locator} returned no Content-Length")
                return ObjectMetadata(
                    size=int(content_length),
                    etag=response.headers.get('ETag')
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientError(
                f"HEAD {locator} failed: {type(e).__name__}: {e}", original_error=e
            ) from e

    async def get_range(self, locator: ObjectLocator, byte_range: ByteRange) -> bytes:
        session = await self._ensure_session()
        url = self.object_url(locator)
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        headers = {'Range': byte_range.http_header()}

        try:
            async with session.get(url, headers=headers, timeout=timeout) as response:
                logger.debug(f"GET {url} {headers['Range']} -> {response.status}")
                _raise_for_status(response.status, response.reason, response.headers, locator)

                if response.status == 206:
                    start, _, _ = parse_content_range(response.headers.get('Content-Range', ''))
                    if start is not None and start != byte_range.offset:
                        raise ProtocolError(
                            f"GET {locator} {byte_range} answered from offset {start}"
                        )

                body = bytearray()
                async for chunk in response.content.iter_chunked(STREAM_READ_SIZE):
                    body.extend(chunk)
                    if len(body) > byte_range.length:
                        # Server ignored the Range header and is sending more
                        break
                return bytes(body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientError(
                f"GET {locator} {byte_range} failed: {type(e).__name__}: {e}", original_error=e
            ) from e
