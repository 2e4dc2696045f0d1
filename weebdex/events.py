"""Request lifecycle events.

Handlers subclass EventHandler and override the callbacks they care about.
The dispatcher calls handlers synchronously, in registration order, on the
task that made the request. A handler that raises is not isolated: the
exception propagates to whoever made the request.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    import httpx

    from weebdex.models import RateLimit, WeebDexResponse

logger = logging.getLogger(__name__)


class EventHandler:
    """Observer for request lifecycle events. All callbacks default to no-ops."""

    def on_rate_limit_data_received(self, url: str, limits: RateLimit) -> None:
        pass

    def on_rate_limit_exceeded(self, url: str, limits: RateLimit) -> None:
        pass

    def on_request_starting(self, url: str) -> None:
        pass

    def on_request_error(self, url: str, error: BaseException) -> None:
        pass

    def on_request_finished(self, url: str, error: BaseException | None) -> None:
        pass

    def on_response_received(
        self, url: str, response: httpx.Response, request: httpx.Request
    ) -> None:
        pass

    def on_response_parsed(self, url: str, response: httpx.Response, data: object) -> None:
        pass

    def on_response(self, response: WeebDexResponse) -> None:
        pass


class EventDispatcher:
    """Fans each event out to every registered handler.

    The handler list is fixed at construction, so dispatch needs no locking.
    """

    def __init__(self, handlers: Iterable[EventHandler] = ()) -> None:
        self._handlers: tuple[EventHandler, ...] = tuple(handlers)

    @property
    def handlers(self) -> tuple[EventHandler, ...]:
        return self._handlers

    def _run(self, action: Callable[[EventHandler], None]) -> None:
        for handler in self._handlers:
            action(handler)

    def on_rate_limit_data_received(self, url: str, limits: RateLimit) -> None:
        self._run(lambda h: h.on_rate_limit_data_received(url, limits))

    def on_rate_limit_exceeded(self, url: str, limits: RateLimit) -> None:
        self._run(lambda h: h.on_rate_limit_exceeded(url, limits))

    def on_request_starting(self, url: str) -> None:
        self._run(lambda h: h.on_request_starting(url))

    def on_request_error(self, url: str, error: BaseException) -> None:
        self._run(lambda h: h.on_request_error(url, error))

    def on_request_finished(self, url: str, error: BaseException | None) -> None:
        self._run(lambda h: h.on_request_finished(url, error))

    def on_response_received(
        self, url: str, response: httpx.Response, request: httpx.Request
    ) -> None:
        self._run(lambda h: h.on_response_received(url, response, request))

    def on_response_parsed(self, url: str, response: httpx.Response, data: object) -> None:
        self._run(lambda h: h.on_response_parsed(url, response, data))

    def on_response(self, response: WeebDexResponse) -> None:
        self._run(lambda h: h.on_response(response))


class LoggingEventHandler(EventHandler):
    """Writes lifecycle events to a logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_rate_limit_exceeded(self, url: str, limits: RateLimit) -> None:
        self._log.warning(
            "Rate limit exhausted for %s (limit %d, retry after %s)",
            url, limits.limit, limits.retry_after,
        )

    def on_request_starting(self, url: str) -> None:
        self._log.debug("Request starting: %s", url)

    def on_request_error(self, url: str, error: BaseException) -> None:
        self._log.error("Request failed: %s: %s", url, error)

    def on_response_received(
        self, url: str, response: httpx.Response, request: httpx.Request
    ) -> None:
        self._log.debug(
            "Response received: %s %s -> %d", request.method, url, response.status_code
        )

    def on_request_finished(self, url: str, error: BaseException | None) -> None:
        self._log.debug("Request finished: %s (%s)", url, "failed" if error else "ok")
