"""Pytest configuration and fixtures for weebdex tests.

This file provides:
- TransportSpy: httpx.MockTransport handler that records every request
- RecordingHandler: EventHandler that records every event it receives
- build_api / build_weebdex: wire the pipeline onto a spy transport
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from weebdex.api_service import ApiService
from weebdex.client import WeebDex
from weebdex.events import EventDispatcher, EventHandler
from weebdex.models import ApiConfig, RateLimitConfig

Responder = Callable[[httpx.Request], httpx.Response]

NO_RATE_LIMIT = RateLimitConfig(enabled=False)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def json_response(status_code: int = 200, body: Any = None, **kwargs: Any) -> httpx.Response:
    """Create a JSON response. body=None means an empty body."""
    content = b"" if body is None else json.dumps(body).encode("utf-8")
    headers = kwargs.pop("headers", {})
    if body is not None:
        headers.setdefault("Content-Type", "application/json")
    return httpx.Response(status_code, content=content, headers=headers, **kwargs)


class TransportSpy:
    """Records requests and answers them with a responder.

    Usage:
        spy = TransportSpy(lambda request: json_response(200, {"data": {}}))
        client = httpx.AsyncClient(transport=spy.transport)
        ...
        assert len(spy.requests) == 1
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self._responder = responder or (lambda request: json_response(200, {}))
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


class RecordingHandler(EventHandler):
    """Keeps (event name, args) tuples in the order events arrive."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names.count(name)

    def args(self, name: str) -> tuple:
        for event, args in self.events:
            if event == name:
                return args
        raise AssertionError(f"No {name} event recorded")

    def on_rate_limit_data_received(self, url, limits):
        self.events.append(("rate_limit_data_received", (url, limits)))

    def on_rate_limit_exceeded(self, url, limits):
        self.events.append(("rate_limit_exceeded", (url, limits)))

    def on_request_starting(self, url):
        self.events.append(("request_starting", (url,)))

    def on_request_error(self, url, error):
        self.events.append(("request_error", (url, error)))

    def on_request_finished(self, url, error):
        self.events.append(("request_finished", (url, error)))

    def on_response_received(self, url, response, request):
        self.events.append(("response_received", (url, response, request)))

    def on_response_parsed(self, url, response, data):
        self.events.append(("response_parsed", (url, response, data)))

    def on_response(self, response):
        self.events.append(("response", (response,)))


def build_api(
    spy: TransportSpy,
    config: ApiConfig | None = None,
    handlers: list[EventHandler] | None = None,
    **kwargs: Any,
) -> ApiService:
    """ApiService on the spy transport, without a rate limiter unless one is given."""
    return ApiService(
        config or ApiConfig(rate_limits=NO_RATE_LIMIT),
        httpx.AsyncClient(transport=spy.transport),
        events=EventDispatcher(handlers or []),
        **kwargs,
    )


def build_weebdex(spy: TransportSpy, **kwargs: Any) -> WeebDex:
    """WeebDex on the spy transport with client-side rate limiting disabled."""
    kwargs.setdefault("config", ApiConfig(rate_limits=NO_RATE_LIMIT))
    return WeebDex(client=httpx.AsyncClient(transport=spy.transport), **kwargs)


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()
