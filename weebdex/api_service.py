"""ApiService - The request pipeline every resource call goes through.

One call runs these stages in order, never going back:

    url resolution -> auth decision -> request construction -> rate gate
    -> dispatch -> metadata fill -> response decode -> finalize

Failures in any stage (missing credentials, transport errors, undecodable
bodies) are captured into the call's RequestMetaData and returned on the
envelope. They are only raised when ApiConfig.throw_on_error is set.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel

from weebdex.credentials import CredentialsProvider, resolve_credentials
from weebdex.decoder import decode_envelope
from weebdex.errors import (
    AuthenticationRequiredError,
    TransportError,
    WeebDexError,
    WeebDexResponseError,
)
from weebdex.events import EventDispatcher
from weebdex.models import ApiConfig, Credentials, RateLimit, RequestMetaData, WeebDexResponse
from weebdex.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=WeebDexResponse)

RequestHook = Callable[[str, httpx.Request], None]

# Rate limit headers. The names and the epoch-seconds retry convention are
# provisional: they follow MangaDex and are unconfirmed for WeebDex.
RATE_LIMIT_LIMIT_HEADER = "X-RateLimit-Limit"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RETRY_AFTER_HEADER = "X-RateLimit-Retry-After"

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _headers_to_dict(headers: httpx.Headers) -> dict[str, list[str]]:
    """Lowercase keys, list values (repeated headers keep every value)."""
    result: dict[str, list[str]] = {}
    for key, value in headers.multi_items():
        result.setdefault(key.lower(), []).append(value)
    return result


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_epoch(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(float(value.strip()), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def parse_rate_limit_headers(headers: httpx.Headers) -> RateLimit | None:
    """Read the rate limit headers off a response.

    Returns None when none of the headers are present (or parseable). A
    missing remaining count is taken to equal the limit.
    """
    limit = _parse_int(headers.get(RATE_LIMIT_LIMIT_HEADER))
    remaining = _parse_int(headers.get(RATE_LIMIT_REMAINING_HEADER))
    retry_after = _parse_epoch(headers.get(RATE_LIMIT_RETRY_AFTER_HEADER))

    if limit is None and remaining is None and retry_after is None:
        return None

    return RateLimit(
        limit=limit or 0,
        remaining=remaining if remaining is not None else (limit or 0),
        retry_after=retry_after,
    )


def _drop_none(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_drop_none(item) for item in value]
    return value


def serialize_body(body: Any) -> str | None:
    """Serialize a request body to JSON, dropping None fields at every level.

    Strings are taken as already serialized.
    """
    if body is None:
        return None
    if isinstance(body, str):
        return body
    if isinstance(body, BaseModel):
        return body.model_dump_json(exclude_none=True)
    return json.dumps(_drop_none(body))


class ApiService:
    """Executes requests against the WeebDex API.

    Usage:
        async with httpx.AsyncClient() as client:
            api = ApiService(ApiConfig(), client)
            manga = await api.get("/manga/abc", DataResponse[Manga])
            if manga.succeeded:
                ...

    The rate limiter and event dispatcher are meant to be shared by every
    ApiService of a process; the composition root in weebdex.client does that.
    """

    def __init__(
        self,
        config: ApiConfig,
        client: httpx.AsyncClient,
        events: EventDispatcher | None = None,
        credentials: CredentialsProvider | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        request_hook: RequestHook | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: API settings (base URL, user agent, throw-on-error).
            client: HTTP client used to send requests. Its timeout policy
                    applies to every request.
            events: Lifecycle event dispatcher. Defaults to no handlers.
            credentials: Provider used when a request needs auth and no
                         explicit credentials were passed.
            rate_limiter: Shared limiter. None disables client-side limiting.
            request_hook: Called with (url, request) after the request is
                          built, to adjust headers or URL before sending.
        """
        self._config = config
        self._client = client
        self._events = events or EventDispatcher()
        self._credentials = credentials
        self._rate_limiter = rate_limiter
        self._request_hook = request_hook

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def credentials(self) -> CredentialsProvider | None:
        return self._credentials

    def wrap_url(self, url: str) -> str:
        """Resolve a path against the configured API root.

        A URL that carries a scheme is treated as absolute and used as is.
        """
        try:
            scheme = httpx.URL(url).scheme
        except httpx.InvalidURL:
            # Left for request construction to report
            scheme = ""
        if scheme:
            return url
        return f"{self._config.api_url.rstrip('/')}/{url.lstrip('/')}"

    def _auth_header(
        self, url: str, required: bool, credentials: Credentials | None
    ) -> tuple[str, str] | None:
        if not required:
            return None

        creds = resolve_credentials(credentials, self._credentials)
        if not creds.is_set or creds.header_name is None:
            raise AuthenticationRequiredError(url)
        return creds.header_name, creds.value or ""

    def create_request(
        self,
        meta: RequestMetaData,
        url: str,
        method: str,
        body: str | None,
        auth_required: bool,
        credentials: Credentials | None,
    ) -> httpx.Request:
        """Build the outbound request and record it in meta.

        Raises:
            AuthenticationRequiredError: If auth is required and no credentials resolve.
            TransportError: If the URL cannot be used to build a request.
        """
        meta.request.method = method
        meta.request.uri = url
        meta.request.body = body

        headers: dict[str, str] = {}
        if self._config.user_agent and self._config.user_agent.strip():
            headers["User-Agent"] = self._config.user_agent
        if body is not None:
            headers["Content-Type"] = JSON_CONTENT_TYPE

        auth = self._auth_header(url, auth_required, credentials)
        if auth is not None:
            headers[auth[0]] = auth[1]

        try:
            request = self._client.build_request(
                method,
                url,
                headers=headers,
                content=body.encode("utf-8") if body is not None else None,
            )
        except httpx.InvalidURL as e:
            raise TransportError(f"Invalid request URL '{url}': {e}") from e

        if self._request_hook is not None:
            self._request_hook(url, request)

        meta.request.uri = str(request.url)
        meta.request.headers = _headers_to_dict(request.headers)
        return request

    async def _rate_gate(
        self, meta: RequestMetaData, url: str, request: httpx.Request
    ) -> httpx.Response | None:
        """Acquire a lease. Returns a synthesized 429 response if it was denied."""
        if self._rate_limiter is None:
            return None

        lease = await self._rate_limiter.acquire()
        if lease.acquired:
            return None

        retry_after = lease.retry_after or 0.0
        limits = RateLimit(
            limit=self._rate_limiter.permit_limit,
            remaining=0,
            retry_after=datetime.now(timezone.utc) + timedelta(seconds=retry_after),
        )
        meta.rate_limits = limits
        logger.debug("Rate limit lease denied for %s, retry in %.3fs", url, retry_after)
        self._events.on_rate_limit_data_received(url, limits)
        self._events.on_rate_limit_exceeded(url, limits)

        response = httpx.Response(
            429,
            headers={"Retry-After": str(math.ceil(retry_after))},
            request=request,
        )
        self._record_response(meta, response)
        return response

    async def _send(
        self, meta: RequestMetaData, request: httpx.Request, url: str
    ) -> httpx.Response:
        """Send the request, returning a streaming response the caller must close.

        Raises:
            TransportError: If the request fails at the network level.
        """
        self._events.on_request_starting(url)
        start = time.perf_counter()
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request error: {e}") from e
        meta.response.request_elapsed_ms = _elapsed_ms(start)

        try:
            self._events.on_response_received(url, response, request)
            self._fill_metadata(meta, url, response)
        except BaseException:
            await response.aclose()
            raise
        return response

    def _record_response(self, meta: RequestMetaData, response: httpx.Response) -> None:
        meta.response.status_code = response.status_code
        meta.response.reason_phrase = response.reason_phrase
        meta.response.headers = _headers_to_dict(response.headers)

    def _fill_metadata(
        self, meta: RequestMetaData, url: str, response: httpx.Response
    ) -> None:
        limits = parse_rate_limit_headers(response.headers)
        if limits is not None:
            meta.rate_limits = limits
            self._events.on_rate_limit_data_received(url, limits)
            if limits.is_limited:
                self._events.on_rate_limit_exceeded(url, limits)

        self._record_response(meta, response)

    async def _handle_response(
        self,
        meta: RequestMetaData,
        response: httpx.Response,
        url: str,
        response_type: type[E],
    ) -> E:
        """Read the body and decode it into response_type.

        Raises:
            TransportError: If the body cannot be read.
            ResponseDecodeError: If the body does not fit the envelope.
        """
        start = time.perf_counter()
        try:
            await response.aread()
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to read response body: {e}") from e

        text = response.text
        meta.response.body = text
        meta.response.read_elapsed_ms = _elapsed_ms(start)

        data = decode_envelope(text, response_type)
        self._events.on_response_parsed(url, response, data)
        return data

    async def request(
        self,
        url: str,
        method: str = "GET",
        response_type: type[E] = WeebDexResponse,
        *,
        body: Any = None,
        auth_required: bool = False,
        credentials: Credentials | None = None,
    ) -> E:
        """Make a request and decode its response.

        Args:
            url: Path relative to the API root, or an absolute URL.
            method: HTTP method.
            response_type: Envelope class to decode into.
            body: JSON body (pydantic model, plain data or pre-serialized string).
            auth_required: Whether credentials must be attached.
            credentials: Explicit credentials; they win over the provider.

        Returns:
            The decoded envelope with metadata attached. Check ``succeeded``.

        Raises:
            WeebDexResponseError: If the request did not succeed and
                throw_on_error is configured.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        meta = RequestMetaData()
        start = time.perf_counter()
        url = self.wrap_url(url)
        envelope: E | None = None
        error: WeebDexError | None = None

        logger.debug("%s %s", method, url)
        try:
            request = self.create_request(
                meta, url, method, serialize_body(body), auth_required, credentials
            )
            response = await self._rate_gate(meta, url, request)
            if response is None:
                response = await self._send(meta, request, url)
            try:
                envelope = await self._handle_response(meta, response, url, response_type)
            finally:
                await response.aclose()
        except WeebDexError as e:
            error = e
        except asyncio.CancelledError as e:
            meta.response.exception = e
            meta.elapsed_ms = _elapsed_ms(start)
            self._events.on_request_error(url, e)
            self._events.on_request_finished(url, e)
            raise

        meta.elapsed_ms = _elapsed_ms(start)
        if error is not None:
            meta.response.exception = error
            logger.warning("%s %s failed: %s", method, url, error)
            self._events.on_request_error(url, error)

        if envelope is None:
            envelope = response_type()
        envelope.attach_metadata(meta)

        self._events.on_response(envelope)
        self._events.on_request_finished(url, error)
        logger.debug(
            "%s %s -> %s in %.1fms", method, url, meta.response.status_code, meta.elapsed_ms
        )

        if self._config.throw_on_error and not envelope.succeeded:
            raise WeebDexResponseError(envelope) from error
        return envelope

    async def get(
        self,
        url: str,
        response_type: type[E] = WeebDexResponse,
        *,
        auth_required: bool = False,
        credentials: Credentials | None = None,
    ) -> E:
        return await self.request(
            url, "GET", response_type, auth_required=auth_required, credentials=credentials
        )

    async def post(
        self,
        url: str,
        response_type: type[E] = WeebDexResponse,
        *,
        body: Any = None,
        auth_required: bool = False,
        credentials: Credentials | None = None,
    ) -> E:
        return await self.request(
            url, "POST", response_type,
            body=body, auth_required=auth_required, credentials=credentials,
        )

    async def put(
        self,
        url: str,
        response_type: type[E] = WeebDexResponse,
        *,
        body: Any = None,
        auth_required: bool = False,
        credentials: Credentials | None = None,
    ) -> E:
        return await self.request(
            url, "PUT", response_type,
            body=body, auth_required=auth_required, credentials=credentials,
        )

    async def delete(
        self,
        url: str,
        response_type: type[E] = WeebDexResponse,
        *,
        body: Any = None,
        auth_required: bool = False,
        credentials: Credentials | None = None,
    ) -> E:
        return await self.request(
            url, "DELETE", response_type,
            body=body, auth_required=auth_required, credentials=credentials,
        )
