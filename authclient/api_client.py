"""
Session-aware HTTP API client.

This module ties the pipeline together: every call runs through the request
interceptor, the transport and the response interceptor, and failed calls are
handed to the refresh coordinator which may refresh the token, replay the call
or force a logout.
"""

import logging
from typing import Optional, Dict, Any

from authshared.exceptions import (
    AuthClientError, AuthExpiredError, SessionExpiredError, ResponseError,
    RefreshFailureError
)
from authshared.interfaces import INavigator, ITransport
from authshared.logging_config import AuditLogger
from authshared.models import RequestConfig, Response, PipelineSettings
from authclient.auth.token_storage import SessionTokenStore
from authclient.codec import EncryptionCodec
from authclient.interceptors import RequestInterceptor, ResponseInterceptor
from authclient.navigation import Navigator
from authclient.refresh import RefreshCoordinator
from authclient.transport import AiohttpTransport

logger = logging.getLogger(__name__)


class SessionAPIClient:
    """
    HTTP client that carries a bearer token and keeps it fresh.

    Provides login, token refresh and generic verbs for application endpoints.
    All calls share one token store, one navigator and one refresh coordinator.
    """

    def __init__(
        self,
        server_url: str,
        token_store: Optional[SessionTokenStore] = None,
        navigator: Optional[INavigator] = None,
        transport: Optional[ITransport] = None,
        settings: Optional[PipelineSettings] = None,
        codec: Optional[EncryptionCodec] = None,
        timeout: float = 30.0,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.server_url = server_url.rstrip('/')
        self.settings = settings or PipelineSettings()
        self.token_store = token_store or SessionTokenStore()
        self.navigator = navigator or Navigator()
        self.codec = codec or EncryptionCodec()
        self.transport = transport or AiohttpTransport(self.server_url, timeout=timeout)

        self.request_interceptor = RequestInterceptor(self.token_store, self.codec, self.settings)
        self.response_interceptor = ResponseInterceptor(self.codec, self.settings)
        self.refresh_coordinator = RefreshCoordinator(
            self.token_store, self.navigator, self.settings, audit_logger=audit_logger
        )

        logger.info(
            f"API client initialized for server: {self.server_url} "
            f"(encryption: {self.settings.encryption_enabled})"
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the underlying transport."""
        await self.transport.close()

    def _classify_failure(self, response: Response) -> ResponseError:
        status = response.status
        if status == self.settings.auth_expired_status:
            return AuthExpiredError(response)
        if status == self.settings.session_expired_status:
            return SessionExpiredError(response)

        detail = None
        if isinstance(response.data, dict):
            detail = response.data.get('detail') or response.data.get('message')
        return ResponseError(
            f"Request failed ({status}): {detail or 'Unknown error'}",
            response=response
        )

    async def send(self, config: RequestConfig) -> Response:
        """
        Run one attempt through the interceptors and the transport.

        Args:
            config: Request to send

        Returns:
            Decoded response

        Raises:
            ResponseError: For non-success statuses (or one of its subclasses)
            TransportError: On network failures
            DecodeError: When the response envelope cannot be decoded
        """
        config = self.request_interceptor(config)
        response = await self.transport.send(config)

        if not response.ok:
            logger.debug(f"{config.method} {config.url} failed with status {response.status}")
            raise self._classify_failure(response)

        return self.response_interceptor(response)

    async def request(self, config: RequestConfig) -> Response:
        """
        Send a request, letting the refresh coordinator recover expired tokens.

        Login calls are never routed through the coordinator.
        """
        try:
            return await self.send(config)
        except ResponseError as error:
            if self.settings.is_login_url(config.url):
                raise
            return await self.refresh_coordinator.handle_error(error, self)

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None,
                  headers: Optional[Dict[str, str]] = None) -> Response:
        return await self.request(RequestConfig('GET', url, headers=dict(headers or {}), params=params))

    async def post(self, url: str, data: Any = None, params: Optional[Dict[str, Any]] = None,
                   headers: Optional[Dict[str, str]] = None) -> Response:
        return await self.request(RequestConfig('POST', url, headers=dict(headers or {}), data=data, params=params))

    async def put(self, url: str, data: Any = None, params: Optional[Dict[str, Any]] = None,
                  headers: Optional[Dict[str, str]] = None) -> Response:
        return await self.request(RequestConfig('PUT', url, headers=dict(headers or {}), data=data, params=params))

    async def delete(self, url: str, params: Optional[Dict[str, Any]] = None,
                     headers: Optional[Dict[str, str]] = None) -> Response:
        return await self.request(RequestConfig('DELETE', url, headers=dict(headers or {}), params=params))

    async def login(self, credentials: Dict[str, Any]) -> Response:
        """
        Post credentials to the login endpoint.

        The login call carries no bearer token and its bodies are sent and
        received as-is.
        """
        return await self.request(RequestConfig('POST', self.settings.login_path, data=credentials))

    async def refresh_token(self) -> str:
        """
        Ask the server for a new access token.

        Returns:
            The new token

        Raises:
            RefreshFailureError: On any failure, chained to its cause
        """
        try:
            response = await self.send(RequestConfig('GET', self.settings.refresh_path))
        except AuthClientError as e:
            raise RefreshFailureError(cause=e) from e

        body = response.data if isinstance(response.data, dict) else {}
        payload = body.get('data')
        token = payload.get('token') if isinstance(payload, dict) else None

        if not token or not isinstance(token, str):
            raise RefreshFailureError(
                "Token Update Failed: refresh response carried no token",
                context={'url': self.settings.refresh_path}
            )

        return token
