"""Credential providers and resolution.

Resolution order for an authenticated request: an explicit per-call
credential wins, then the injected provider, then nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from weebdex.models import AuthConfig, Credentials


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


class CredentialsProvider(ABC):
    """Supplies credentials from some local source.

    Subclasses only expose the raw values; get_credentials() decides which
    variant to build. A non-blank cookie wins over an API key.
    """

    @property
    @abstractmethod
    def client_id(self) -> str | None: ...

    @property
    @abstractmethod
    def client_secret(self) -> str | None: ...

    @property
    @abstractmethod
    def cookie(self) -> str | None: ...

    def get_credentials(self) -> Credentials:
        cookie = self.cookie
        if not _blank(cookie):
            return Credentials.cookie(cookie)

        client_id = self.client_id
        client_secret = self.client_secret
        if not _blank(client_id) and not _blank(client_secret):
            return Credentials.api_key(client_id, client_secret)

        return Credentials.none()


class HardCodedCredentialsProvider(CredentialsProvider):
    """Credentials given directly in code."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        cookie: str | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._cookie = cookie

    @property
    def client_id(self) -> str | None:
        return self._client_id

    @property
    def client_secret(self) -> str | None:
        return self._client_secret

    @property
    def cookie(self) -> str | None:
        return self._cookie


class ConfigCredentialsProvider(CredentialsProvider):
    """Credentials read from the ``auth`` section of the config file."""

    def __init__(self, auth: AuthConfig | None) -> None:
        self._auth = auth or AuthConfig()

    @property
    def client_id(self) -> str | None:
        return self._auth.client_id

    @property
    def client_secret(self) -> str | None:
        return self._auth.client_secret

    @property
    def cookie(self) -> str | None:
        return self._auth.cookie


class LayeredCredentialsProvider(CredentialsProvider):
    """Combines providers field by field; the first non-blank value wins.

    Used by the CLI to put command-line options in front of the config file.
    """

    def __init__(self, *providers: CredentialsProvider) -> None:
        self._providers = providers

    def _first(self, field: str) -> str | None:
        for provider in self._providers:
            value = getattr(provider, field)
            if not _blank(value):
                return value
        return None

    @property
    def client_id(self) -> str | None:
        return self._first("client_id")

    @property
    def client_secret(self) -> str | None:
        return self._first("client_secret")

    @property
    def cookie(self) -> str | None:
        return self._first("cookie")


def resolve_credentials(
    override: Credentials | None,
    provider: CredentialsProvider | None,
) -> Credentials:
    """Pick the credentials for a request.

    Never raises: the worst case is Credentials.none().
    """
    if override is not None and override.is_set:
        return override
    if provider is None:
        return Credentials.none()
    return provider.get_credentials()
