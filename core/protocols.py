"""Shared protocol definitions."""

from enum import Enum
from typing import Protocol


class AuthMode(Enum):
    """How requests to the controller are authenticated."""

    TRUSTED = "trusted"
    TOKEN = "token"


class Authenticator(Protocol):
    """Protocol for bearer token providers (NoAuthRequired, TokenAuthenticator)."""

    mode: AuthMode

    async def obtain_token(self) -> str: ...
    def invalidate(self) -> None: ...


class CredentialPrompt(Protocol):
    """Protocol for asking the user for a username and password."""

    def ask_credentials(self, username: str | None = None) -> tuple[str, str]: ...
