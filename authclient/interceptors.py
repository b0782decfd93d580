"""
Request and response interceptors.

Both interceptors are synchronous and run on every call made through the
client. The login endpoint is exempt from both: it never carries a bearer
token and its bodies are never wrapped or unwrapped.
"""

import logging

from authshared.models import RequestConfig, Response, PipelineSettings
from authclient.auth.token_storage import SessionTokenStore
from authclient.codec import EncryptionCodec

logger = logging.getLogger(__name__)


class RequestInterceptor:
    """Adds the bearer token and, when enabled, wraps the body in an envelope."""

    def __init__(self, token_store: SessionTokenStore, codec: EncryptionCodec, settings: PipelineSettings):
        self.token_store = token_store
        self.codec = codec
        self.settings = settings

    def __call__(self, config: RequestConfig) -> RequestConfig:
        if self.settings.is_login_url(config.url):
            return config

        # Read at send time so replays pick up a refreshed token.
        token = self.token_store.get_token()
        if token:
            config.headers['Authorization'] = f'Bearer {token}'
        else:
            logger.debug(f"No access token available for {config.method} {config.url}")

        if self.settings.encryption_enabled and config.data and not config.retrying_after_token_refresh:
            config.data = self.codec.wrap(config.data)

        return config


class ResponseInterceptor:
    """Unwraps the envelope field of successful responses when encoding is enabled."""

    def __init__(self, codec: EncryptionCodec, settings: PipelineSettings):
        self.codec = codec
        self.settings = settings

    def __call__(self, response: Response) -> Response:
        if not self.settings.encryption_enabled:
            return response

        url = response.config.url if response.config else None
        if self.settings.is_login_url(url):
            return response

        body = response.data
        field = EncryptionCodec.ENVELOPE_FIELD
        if isinstance(body, dict) and body.get(field):
            body[field] = self.codec.decode(body[field])

        return response
