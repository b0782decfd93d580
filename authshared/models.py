"""
Core data models for the session-aware HTTP client.

This module defines the data structures passed between the interceptors, the
refresh coordinator and the transport.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import Enum


class RefreshState(Enum):
    """State of the single-flight token refresh."""
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class RequestConfig:
    """Full description of an outgoing call; mutated in place on every attempt."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    data: Any = None
    params: Optional[Dict[str, Any]] = None
    retrying_after_token_refresh: bool = False
    refresh_attempts: int = 0

    def __post_init__(self):
        if not self.method:
            raise ValueError("Request method cannot be empty")
        if not self.url:
            raise ValueError("Request URL cannot be empty")
        self.method = self.method.upper()


@dataclass
class Response:
    """An HTTP response together with the config that produced it."""
    status: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    config: Optional[RequestConfig] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class Notice:
    """Transient user-facing message shown alongside a forced navigation."""
    message: str
    notice_id: str
    duration_ms: int = 2000


@dataclass
class PendingRequest:
    """
    A request parked while a token refresh is in flight.

    The future is the completion handle handed back to the original caller;
    it is settled exactly once, either with the replayed response or with the
    captured error when the refresh fails.
    """
    future: asyncio.Future
    config: RequestConfig
    error: Exception
    client: Any

    def resolve(self, response: Response) -> bool:
        if self.future.done():
            return False
        self.future.set_result(response)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


@dataclass
class PipelineSettings:
    """Behavioural knobs of the interceptor pipeline."""
    encryption_enabled: bool = False
    login_suffix: str = "/login"
    login_path: str = "/user/login"
    refresh_path: str = "/user/refresh-token"
    auth_expired_status: int = 401
    session_expired_status: int = 440
    max_refresh_attempts: int = 1
    entry_route: str = "/"
    notice_duration_ms: int = 2000

    def __post_init__(self):
        if self.auth_expired_status == self.session_expired_status:
            raise ValueError("Auth-expired and session-expired statuses must differ")
        if self.max_refresh_attempts < 0:
            raise ValueError("max_refresh_attempts cannot be negative")

    def is_login_url(self, url: Optional[str]) -> bool:
        """Login calls are matched by path suffix, ignoring any query string."""
        if not url:
            return False
        path = url.split('?', 1)[0].rstrip('/')
        return path.endswith(self.login_suffix.rstrip('/'))
