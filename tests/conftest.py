"""Shared fixtures: a scripted fake controller and fake authenticators."""

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from core.api import ApiTarget
from core.protocols import AuthMode


class FakeController:
    """httpx.MockTransport handler that replays queued outcomes.

    Each queued item is a status code, an ``httpx.Response`` or an exception
    to raise. Every received request is kept in ``requests``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._outcomes: list[int | httpx.Response | Exception] = []

    def queue(self, *outcomes: int | httpx.Response | Exception) -> "FakeController":
        self._outcomes.extend(outcomes)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._outcomes:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return httpx.Response(outcome, json={"response": [{"result": "ok"}]})
        return outcome


class FakeAuthenticator:
    """Authenticator that hands out a fixed token and counts calls."""

    def __init__(
        self,
        mode: AuthMode = AuthMode.TOKEN,
        token: str = "secret-token",
        error: Exception | None = None,
    ) -> None:
        self.mode = mode
        self.token = token
        self.error = error
        self.calls = 0
        self.invalidated = 0

    async def obtain_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token

    def invalidate(self) -> None:
        self.invalidated += 1


class FakePrompt:
    """Credential prompt that answers (or declines) without a terminal."""

    def __init__(self, username: str = "root", password: str = "turing", error: Exception | None = None):
        self.username = username
        self.password = password
        self.error = error
        self.calls: list[str | None] = []

    def ask_credentials(self, username: str | None = None) -> tuple[str, str]:
        self.calls.append(username)
        if self.error is not None:
            raise self.error
        return self.username, self.password


@pytest.fixture
def target() -> ApiTarget:
    return ApiTarget("https://bmc.test/api/bmc")


@pytest.fixture
def controller() -> FakeController:
    return FakeController()


@pytest.fixture
def auth() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def trusted_auth() -> FakeAuthenticator:
    return FakeAuthenticator(mode=AuthMode.TRUSTED)


@pytest_asyncio.fixture
async def client(controller: FakeController) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(controller)) as client:
        yield client


@pytest.fixture
def prompt() -> FakePrompt:
    return FakePrompt()
