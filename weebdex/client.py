"""WeebDex - Composition root wiring the pipeline and resource services."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

import httpx

from weebdex.api_service import ApiService, RequestHook
from weebdex.config_loader import load_runtime_config
from weebdex.credentials import ConfigCredentialsProvider, CredentialsProvider
from weebdex.events import EventDispatcher, EventHandler
from weebdex.models import ApiConfig
from weebdex.rate_limiter import FixedWindowRateLimiter
from weebdex.services import (
    ApiClientService,
    AuthorService,
    ChapterService,
    CoverService,
    GroupService,
    MangaService,
    StatisticsService,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class WeebDex:
    """Entry point to the WeebDex API.

    Usage:
        async with WeebDex() as wd:
            manga = await wd.manga.get("2mkslp3v5e")
            if manga.succeeded:
                print(manga.data.title)

    Everything created here (HTTP client, rate limiter, event dispatcher) is
    shared by all services of the instance. An injected httpx client is left
    open on close; only a client created here is closed.
    """

    def __init__(
        self,
        config: ApiConfig | None = None,
        credentials: CredentialsProvider | None = None,
        handlers: Iterable[EventHandler] = (),
        client: httpx.AsyncClient | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        request_hook: RequestHook | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            config: API settings. Defaults to the production API.
            credentials: Provider used for authenticated calls.
            handlers: Lifecycle event handlers, called in order.
            client: HTTP client to use instead of creating one.
            rate_limiter: Limiter to use instead of building one from config.
            request_hook: Called with (url, request) before each request is sent.
            timeout: Timeout in seconds for a client created here.
        """
        self._config = config or ApiConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

        if rate_limiter is None:
            rate_limiter = FixedWindowRateLimiter.from_config(self._config.rate_limits)
        self._rate_limiter = rate_limiter
        self._events = EventDispatcher(handlers)

        self.api = ApiService(
            self._config,
            self._client,
            events=self._events,
            credentials=credentials,
            rate_limiter=rate_limiter,
            request_hook=request_hook,
        )
        self.authors = AuthorService(self.api)
        self.chapters = ChapterService(self.api)
        self.manga = MangaService(self.api)
        self.statistics = StatisticsService(self.api)
        self.api_clients = ApiClientService(self.api)
        self.covers = CoverService(self.api)
        self.groups = GroupService(self.api, self.statistics)

    @classmethod
    def from_config_file(cls, path: Path, **kwargs: Any) -> WeebDex:
        """Build a client from a YAML config file.

        Credentials come from the file's ``auth`` section unless a
        ``credentials`` provider is passed explicitly.

        Raises:
            ConfigError: If the file cannot be loaded.
        """
        runtime = load_runtime_config(path)
        kwargs.setdefault("credentials", ConfigCredentialsProvider(runtime.auth))
        return cls(config=runtime.api, **kwargs)

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter | None:
        return self._rate_limiter

    @property
    def events(self) -> EventDispatcher:
        return self._events

    async def __aenter__(self) -> WeebDex:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            logger.debug("Closing HTTP client")
            await self._client.aclose()
