"""Bearer token authentication against the controller's management API."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import httpx
from rich.console import Console

from core.api import ApiTarget
from core.config import AuthSettings
from core.exceptions import (
    CredentialsRejectedError,
    NoCredentialsError,
    TransportConnectionError,
    TransportTimeoutError,
    UnexpectedAuthResponseError,
)
from core.protocols import AuthMode, CredentialPrompt

logger = logging.getLogger(__name__)
console = Console(stderr=True)


class TokenCache:
    """Bearer token persisted between invocations."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> str | None:
        """Return the cached token, or None if there is no usable cache file."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable token cache %s: %s", self.path, e)
            return None
        token = data.get("token") if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None

    def save(self, token: str) -> None:
        """Write the token with owner-only permissions."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": token}, indent=2))
        self.path.chmod(0o600)

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


class NoAuthRequired:
    """Authenticator for controllers that trust every caller (e.g. on the board itself)."""

    mode = AuthMode.TRUSTED

    async def obtain_token(self) -> str:
        return ""

    def invalidate(self) -> None:
        pass


class TokenAuthenticator:
    """Supply a bearer token from memory, the cache, or the user's credentials.

    Token sources are tried in order: a token obtained earlier in this process,
    a pre-supplied token, the token cache (read once), and finally a login with
    the configured or prompted username and password.
    """

    mode = AuthMode.TOKEN

    def __init__(
        self,
        target: ApiTarget,
        client: httpx.AsyncClient,
        prompt: CredentialPrompt,
        cache: TokenCache | None = None,
        *,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self._target = target
        self._client = client
        self._prompt = prompt
        self._cache = cache
        self._supplied_token = token
        self._username = username
        self._password = password
        self._token: str | None = None
        self._cache_checked = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        target: ApiTarget,
        client: httpx.AsyncClient,
        prompt: CredentialPrompt,
        **kwargs: Any,
    ) -> "TokenAuthenticator":
        cache = TokenCache(settings.token_file) if settings.cache_token else None
        kwargs.setdefault("username", settings.username)
        return cls(target, client, prompt, cache, **kwargs)

    async def obtain_token(self) -> str:
        async with self._lock:
            if self._token:
                return self._token

            if self._supplied_token:
                self._token = self._supplied_token
                return self._token

            if self._cache is not None and not self._cache_checked:
                self._cache_checked = True
                cached = self._cache.load()
                if cached:
                    logger.debug("Using cached token from %s", self._cache.path)
                    self._token = cached
                    return self._token

            username, password = self._credentials()
            token = await request_token(self._target, self._client, username, password)
            self._token = token
            self._store(token)
            return token

    def invalidate(self) -> None:
        """Forget the current token, including the cached copy."""
        self._token = None
        self._supplied_token = None
        if self._cache is not None:
            self._cache_checked = True
            try:
                self._cache.delete()
            except OSError as e:
                logger.warning("Failed to delete token cache %s: %s", self._cache.path, e)

    def _credentials(self) -> tuple[str, str]:
        if self._username and self._password:
            return self._username, self._password
        return self._prompt.ask_credentials(self._username)

    def _store(self, token: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(token)
        except OSError as e:
            console.print(
                f"[yellow]Warning:[/yellow] failed to write to cache file {self._cache.path}: {e}"
            )


async def request_token(
    target: ApiTarget,
    client: httpx.AsyncClient,
    username: str,
    password: str,
) -> str:
    """Exchange a username and password for a bearer token."""
    if not username:
        raise NoCredentialsError("no username given")

    try:
        response = await client.post(
            target.url("authenticate"),
            json={"username": username, "password": password},
        )
    except httpx.TimeoutException as e:
        raise TransportTimeoutError(f"Controller timeout: {e}") from e
    except httpx.RequestError as e:
        raise TransportConnectionError(f"Controller connection error: {e}") from e

    if response.status_code == httpx.codes.OK:
        try:
            data = response.json()
        except ValueError as e:
            raise UnexpectedAuthResponseError(
                f"API error: authentication response is not JSON: {e}", response.status_code
            ) from e
        return get_param(data, "id")

    if response.status_code == httpx.codes.FORBIDDEN:
        raise CredentialsRejectedError(response.text or "could not authenticate")

    raise UnexpectedAuthResponseError(
        f"Unexpected status code {response.status_code}", response.status_code
    )


def get_param(results: Any, key: str) -> str:
    """Return a string attribute from a JSON object."""
    if not isinstance(results, dict) or key not in results:
        raise UnexpectedAuthResponseError(f"API error: Expected `{key}` attribute")
    value = results[key]
    if not isinstance(value, str):
        raise UnexpectedAuthResponseError(f"API error: `{key}` value is not a string")
    return value
