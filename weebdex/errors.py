"""Exception types raised or captured by the request pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from weebdex.models import WeebDexResponse


class WeebDexError(Exception):
    """Base class for weebdex errors."""


class AuthenticationRequiredError(WeebDexError):
    """Raised when a request requires credentials but none could be resolved."""

    def __init__(self, url: str) -> None:
        super().__init__(
            f"Authentication is required for {url}, but no credentials were provided."
        )
        self.url = url


class TransportError(WeebDexError):
    """Raised when a request fails at the network level (connection, DNS, timeout)."""


class ResponseDecodeError(WeebDexError):
    """Raised when a response body cannot be mapped onto the expected envelope."""


class WeebDexResponseError(WeebDexError):
    """Raised for unsuccessful requests when the client is configured to throw.

    The full envelope (including its metadata) is carried on the exception so
    nothing is lost by raising instead of returning.
    """

    def __init__(self, response: WeebDexResponse) -> None:
        super().__init__("An error occurred while making a request")
        self.response = response

    @property
    def status_code(self) -> int:
        """Status of the failed response, 500 when no response was received."""
        status = self.response.metadata.response.status_code
        return status if status is not None else 500
