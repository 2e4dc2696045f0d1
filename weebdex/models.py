"""Internal data models for weebdex.

All models use Pydantic v2. Envelopes and request metadata describe what a
call returned; the configuration models describe how the client behaves.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_serializer,
    field_validator,
)

T = TypeVar("T")

API_ROOT = "https://api.weebdex.org"
API_ROOT_DEV = "https://api.weebdex.dev"
API_USER_AGENT = "weebdex-client"


# =============================================================================
# Credentials
# =============================================================================


class CredentialType(str, Enum):
    """Which authentication header, if any, a credential produces."""

    NONE = "none"
    API_KEY = "api_key"
    COOKIE = "cookie"


class Credentials(BaseModel):
    """An immutable credential value.

    For API keys the stored value is already the full ``Authorization``
    header value (``Bearer <id>:<secret>``).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: CredentialType = Field(default=CredentialType.NONE, description="Credential variant")
    value: str | None = Field(default=None, description="Header value sent with the request")

    @classmethod
    def none(cls) -> Credentials:
        return cls()

    @classmethod
    def api_key(cls, client_id: str, client_secret: str) -> Credentials:
        return cls(type=CredentialType.API_KEY, value=f"Bearer {client_id}:{client_secret}")

    @classmethod
    def cookie(cls, cookie: str) -> Credentials:
        return cls(type=CredentialType.COOKIE, value=cookie)

    @property
    def is_set(self) -> bool:
        return self.type != CredentialType.NONE and bool(self.value and self.value.strip())

    @property
    def header_name(self) -> str | None:
        """Name of the header this credential is sent in."""
        if self.type == CredentialType.API_KEY:
            return "Authorization"
        if self.type == CredentialType.COOKIE:
            return "Cookie"
        return None


# =============================================================================
# Request Metadata
# =============================================================================


class RateLimit(BaseModel):
    """Rate limit snapshot, from response headers or from the local limiter."""

    model_config = ConfigDict(extra="forbid")

    limit: int = Field(default=0, description="Requests allowed per window")
    remaining: int = Field(default=0, description="Requests left in the current window")
    retry_after: datetime | None = Field(
        default=None, description="UTC time at which the window resets"
    )

    @property
    def is_limited(self) -> bool:
        return self.remaining <= 0


class RequestData(BaseModel):
    """Snapshot of the request that was sent."""

    model_config = ConfigDict(extra="forbid")

    method: str = Field(default="GET", description="HTTP method")
    uri: str = Field(default=API_ROOT, description="Fully resolved URL")
    headers: dict[str, list[str]] = Field(
        default_factory=dict, description="Request headers (lowercase keys, array values)"
    )
    body: str | None = Field(default=None, description="Serialized request body")


class ResponseData(BaseModel):
    """Snapshot of the response (or the failure) for one request.

    status_code stays None when no response was received at all.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    status_code: int | None = Field(default=None, description="HTTP status code")
    reason_phrase: str | None = Field(default=None, description="HTTP reason phrase")
    headers: dict[str, list[str]] = Field(
        default_factory=dict, description="Response headers (lowercase keys, array values)"
    )
    body: str | None = Field(default=None, description="Raw response body text")
    exception: BaseException | None = Field(
        default=None, description="Error captured while making the request"
    )
    request_elapsed_ms: float = Field(default=0.0, description="Time until headers arrived")
    read_elapsed_ms: float = Field(default=0.0, description="Time spent reading the body")

    @field_validator("exception", mode="before")
    @classmethod
    def parse_exception(cls, v: Any) -> Any:
        # Serialized metadata stores exceptions as their message
        if isinstance(v, str):
            return Exception(v)
        return v

    @field_serializer("exception")
    def serialize_exception(self, exception: BaseException | None) -> str | None:
        if exception is None:
            return None
        return f"{type(exception).__name__}: {exception}"

    @property
    def succeeded(self) -> bool:
        return (
            self.exception is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )


class RequestMetaData(BaseModel):
    """Everything recorded about one call; owned by that call only."""

    model_config = ConfigDict(extra="forbid")

    rate_limits: RateLimit | None = Field(default=None, description="Rate limit snapshot")
    request: RequestData = Field(default_factory=RequestData)
    response: ResponseData = Field(default_factory=ResponseData)
    elapsed_ms: float = Field(default=0.0, description="Total time spent on the call")


# =============================================================================
# Response Envelopes
# =============================================================================


class EnvelopeKind(str, Enum):
    """How the decoder maps a JSON body onto an envelope class."""

    BARE = "bare"  # Whole document maps onto the class
    DATA = "data"  # Single value under the "data" key
    PAGE = "page"  # List under "data" plus limit/page/total


class WeebDexResponse(BaseModel):
    """A response returned from the WeebDex API.

    Metadata is attached after decoding and is never read from or written to
    the wire. Unknown body fields (error details, for example) are kept as
    model extras.
    """

    model_config = ConfigDict(extra="allow")

    envelope_kind: ClassVar[EnvelopeKind] = EnvelopeKind.BARE

    _metadata: RequestMetaData = PrivateAttr(default_factory=RequestMetaData)

    @property
    def metadata(self) -> RequestMetaData:
        return self._metadata

    def attach_metadata(self, metadata: RequestMetaData) -> None:
        self._metadata = metadata

    @property
    def succeeded(self) -> bool:
        return self._metadata.response.succeeded


class DataResponse(WeebDexResponse, Generic[T]):
    """A response carrying a single typed payload under ``data``."""

    envelope_kind: ClassVar[EnvelopeKind] = EnvelopeKind.DATA

    data: T | None = None


class PageResponse(WeebDexResponse, Generic[T]):
    """A paginated response: one page of items plus pagination counters."""

    envelope_kind: ClassVar[EnvelopeKind] = EnvelopeKind.PAGE

    data: list[T] = Field(default_factory=list)
    limit: int = 0
    page: int = 0
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class RateLimitConfig(BaseModel):
    """Client-side rate limiting settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = Field(default=True, description="Whether requests pass through the limiter")
    refresh: float = Field(default=1.0, gt=0, description="Window length in seconds")
    leases: int = Field(default=5, ge=1, description="Requests allowed per window")
    queue: bool = Field(
        default=True, description="Wait for the next window instead of rejecting"
    )


class ApiConfig(BaseModel):
    """Process-wide API settings, read once at startup."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    api_url: str = Field(default=API_ROOT, description="Base URL for relative paths")
    user_agent: str | None = Field(default=API_USER_AGENT, description="User-Agent header")
    throw_on_error: bool = Field(
        default=False, description="Raise WeebDexResponseError for failed requests"
    )
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)

    @classmethod
    def dev(cls, **kwargs: Any) -> ApiConfig:
        """Configuration pointing at the development API host."""
        return cls(api_url=API_ROOT_DEV, **kwargs)


class AuthConfig(BaseModel):
    """Credential values as they appear in the configuration file."""

    model_config = ConfigDict(extra="forbid")

    client_id: str | None = Field(default=None, description="API client ID")
    client_secret: str | None = Field(default=None, description="API client secret")
    cookie: str | None = Field(default=None, description="Browser session cookie")


class RuntimeConfig(BaseModel):
    """Top-level configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    api: ApiConfig = Field(default_factory=ApiConfig, description="API settings")
    auth: AuthConfig | None = Field(default=None, description="Credentials")
