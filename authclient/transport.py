"""
aiohttp transport for the HTTP client.

This module puts RequestConfig objects on the wire and turns whatever comes
back into a Response. Status codes are not interpreted here; network level
failures are raised as TransportError.
"""

import asyncio
import json
import logging
from typing import Optional, Any
from urllib.parse import urljoin

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError

from authshared.exceptions import DecodeError, TransportError, ErrorCode
from authshared.interfaces import ITransport
from authshared.models import RequestConfig, Response

logger = logging.getLogger(__name__)


class AiohttpTransport(ITransport):
    """
    Sends requests through a shared aiohttp ClientSession.

    The session is created lazily on first use and reused until close().
    """

    def __init__(self, base_url: str, timeout: float = 30.0, user_agent: str = 'AuthClient/1.0'):
        self.base_url = base_url.rstrip('/')
        self.timeout = ClientTimeout(total=timeout)
        self.user_agent = user_agent
        self._session: Optional[ClientSession] = None

        logger.info(f"Transport initialized for server: {self.base_url}")

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                keepalive_timeout=30,
                enable_cleanup_closed=True
            )
            self._session = ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers={
                    'User-Agent': self.user_agent,
                    'Accept': 'application/json'
                }
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def resolve_url(self, url: str) -> str:
        """Absolute URLs are kept; paths are joined onto the base URL."""
        if url.startswith(('http://', 'https://')):
            return url
        return urljoin(self.base_url + '/', url.lstrip('/'))

    async def send(self, config: RequestConfig) -> Response:
        """
        Send one request.

        Args:
            config: Request to send; its data is sent as a JSON body

        Returns:
            Response for any HTTP status

        Raises:
            TransportError: On connection failures and timeouts
            DecodeError: When the body is not valid text in its charset
        """
        await self._ensure_session()
        url = self.resolve_url(config.url)

        logger.debug(f"Sending {config.method} {url}")

        try:
            async with self._session.request(
                method=config.method,
                url=url,
                json=config.data,
                params=config.params,
                headers=config.headers
            ) as response:
                body = await self._read_body(response)
                return Response(
                    status=response.status,
                    data=body,
                    headers=dict(response.headers),
                    config=config
                )

        except asyncio.TimeoutError as e:
            logger.warning(f"Request to {url} timed out")
            raise TransportError(
                f"Request to {url} timed out",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                context={'url': url, 'method': config.method},
                cause=e
            )
        except (ClientError, OSError) as e:
            logger.warning(f"Network error on {config.method} {url}: {e}")
            raise TransportError(
                f"Network request failed: {e}",
                error_code=ErrorCode.NETWORK_CONNECTION_FAILED,
                context={'url': url, 'method': config.method},
                cause=e
            )

    async def _read_body(self, response) -> Any:
        """Parse a JSON body; empty bodies become None, anything else stays text."""
        try:
            text = await response.text()
        except UnicodeDecodeError as e:
            logger.warning(f"Undecodable body from {response.url} ({response.status})")
            raise DecodeError(
                f"Response body from {response.url} is not valid {response.charset or 'utf-8'} text",
                context={'url': str(response.url), 'status': response.status},
                cause=e
            )
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
