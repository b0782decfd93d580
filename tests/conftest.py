"""
Shared fixtures for the client pipeline tests.

The ScriptedTransport records every request at the moment it is handed to the
wire and answers through a handler function, which may be a coroutine that
waits on events to control interleaving.
"""

import asyncio
import copy
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock

import pytest

from authshared.interfaces import ITransport
from authshared.models import RequestConfig, Response, PipelineSettings
from authclient.api_client import SessionAPIClient
from authclient.auth.token_storage import SessionTokenStore
from authclient.navigation import Navigator


@dataclass
class SentRequest:
    """Snapshot of a request as it reached the transport."""
    method: str
    url: str
    headers: Dict[str, str]
    data: Any

    @property
    def authorization(self) -> Optional[str]:
        return self.headers.get('Authorization')


class ScriptedTransport(ITransport):
    """Transport double driven by a handler(config) -> Response | Exception."""

    def __init__(self, handler: Callable[[RequestConfig], Any]):
        self.handler = handler
        self.sent: List[SentRequest] = []
        self.closed = False

    async def send(self, config: RequestConfig) -> Response:
        self.sent.append(SentRequest(
            method=config.method,
            url=config.url,
            headers=dict(config.headers),
            data=copy.deepcopy(config.data),
        ))
        result = self.handler(config)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True

    def sent_to(self, url: str) -> List[SentRequest]:
        return [request for request in self.sent if request.url == url]


def respond(config: RequestConfig, status: int = 200, data: Any = None) -> Response:
    return Response(status=status, data=data, config=config)


async def wait_until(predicate: Callable[[], bool], max_iterations: int = 100) -> None:
    """Yield to the event loop until predicate() holds."""
    for _ in range(max_iterations):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("Condition not reached")


@pytest.fixture
def token_store():
    store = SessionTokenStore()
    store.set_token("T1")
    return store


@pytest.fixture
def navigate():
    return Mock()


@pytest.fixture
def show_notice():
    return Mock()


@pytest.fixture
def navigator(navigate, show_notice):
    return Navigator(navigate=navigate, show_notice=show_notice)


@pytest.fixture
def settings():
    return PipelineSettings()


@pytest.fixture
def make_client(token_store, navigator, settings):
    """Factory building a client around a scripted handler."""

    def _make(handler, **overrides):
        transport = ScriptedTransport(handler)
        client = SessionAPIClient(
            server_url="http://api.test",
            token_store=overrides.get('token_store', token_store),
            navigator=overrides.get('navigator', navigator),
            transport=transport,
            settings=overrides.get('settings', settings),
        )
        return client, transport

    return _make
