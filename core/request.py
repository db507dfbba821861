"""Request wrapper that asks for authentication only when the controller wants it.

The first attempt of every request goes out without credentials. Only when the
controller answers ``401 Unauthorized`` is a bearer token obtained from the
authenticator (which may prompt the user) and the request sent a second time.
In trusted mode no token is ever attached and a ``401`` is returned as-is.
"""

from collections.abc import AsyncIterable
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import httpx

from core.api import ApiTarget
from core.exceptions import (
    InvalidTargetError,
    ProgrammingError,
    RequestNotBuiltError,
    TransportConnectionError,
    TransportTimeoutError,
    UnreplayableBodyError,
)
from core.multipart import MultipartForm
from core.protocols import Authenticator, AuthMode

Content = bytes | AsyncIterable[bytes]


class RequestState(Enum):
    BUILDING = "building"
    READY = "ready"
    ATTEMPTING = "attempting"
    DONE = "done"


@dataclass(frozen=True)
class Envelope:
    """Method, URL and headers of a request, before credentials and form body."""

    method: str
    url: httpx.URL
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: Content | None = None

    @property
    def replayable(self) -> bool:
        return self.content is None or isinstance(self.content, bytes)

    def try_clone(self) -> "Envelope":
        """Return an independent copy, refusing to duplicate a one-shot stream."""
        if not self.replayable:
            raise UnreplayableBodyError("request cannot be cloned: body is a stream")
        return replace(self, headers=httpx.Headers(self.headers))


class AuthenticatedRequest:
    """One logical call to the management API.

    Select a method with :meth:`get` or :meth:`post`, optionally attach a body,
    then :meth:`send`. ``send`` makes one transport attempt, or two when the
    first is rejected with ``401`` and the authenticator can supply a token.
    """

    def __init__(
        self,
        target: ApiTarget,
        auth: Authenticator,
        client: httpx.AsyncClient,
    ) -> None:
        self.target = target
        self.client = client
        self._auth = auth
        self._envelope: Envelope | None = None
        self._multipart: MultipartForm | None = None
        self._stream_sent = False
        self._state = RequestState.BUILDING

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def envelope(self) -> Envelope:
        if self._envelope is None:
            raise RequestNotBuiltError("no HTTP method selected for this request")
        return self._envelope

    @property
    def url(self) -> httpx.URL:
        return self.envelope.url

    def get(self, path: str = "") -> "AuthenticatedRequest":
        """Target a GET at the API base URL (or ``path`` below it)."""
        return self._select("GET", path)

    def post(self, path: str = "") -> "AuthenticatedRequest":
        """Target a POST at the API base URL (or ``path`` below it)."""
        return self._select("POST", path)

    def add_query(self, **params: Any) -> "AuthenticatedRequest":
        """Append query parameters to the selected URL."""
        envelope = self.envelope
        url = envelope.url.copy_merge_params({k: str(v) for k, v in params.items()})
        self._envelope = replace(envelope, url=url)
        return self

    def attach_content(self, content: Content) -> "AuthenticatedRequest":
        """Send ``content`` as the raw body. An async iterable can only be sent once."""
        self._envelope = replace(self.envelope, content=content)
        self._stream_sent = False
        return self

    def attach_multipart(self, form: MultipartForm) -> "AuthenticatedRequest":
        """Send ``form`` with the next :meth:`send`, replacing any earlier form.

        The form takes precedence over raw content attached to the envelope.
        """
        self._multipart = form
        return self

    def clone(self) -> "AuthenticatedRequest":
        """Copy the request. The multipart form is not carried over."""
        other = AuthenticatedRequest(self.target, self._auth, self.client)
        if self._envelope is not None:
            other._envelope = self._envelope.try_clone()
            other._state = RequestState.READY
        return other

    async def send(self) -> httpx.Response:
        """Send the request, escalating to a bearer token on the first ``401``."""
        if self._state is RequestState.DONE:
            raise ProgrammingError("request was already sent")
        if self._state is RequestState.ATTEMPTING:
            raise ProgrammingError("request is already in flight")
        envelope = self.envelope

        form, self._multipart = self._multipart, None
        with_token = False
        self._state = RequestState.ATTEMPTING
        try:
            while True:
                attempt = self._attempt_envelope(envelope)
                headers = httpx.Headers(attempt.headers)
                if with_token:
                    if form is not None and not form.replayable:
                        raise UnreplayableBodyError(
                            "request cannot be retried: multipart body is a stream"
                        )
                    token = await self._auth.obtain_token()
                    headers["Authorization"] = f"Bearer {token}"

                response = await self._execute(attempt, headers, form)

                if (
                    response.status_code == httpx.codes.UNAUTHORIZED
                    and not with_token
                    and self._auth.mode is AuthMode.TOKEN
                ):
                    await response.aclose()
                    with_token = True
                    continue
                return response
        finally:
            self._state = RequestState.DONE

    def _select(self, method: str, path: str) -> "AuthenticatedRequest":
        raw_url = self.target.url(path)
        try:
            url = httpx.URL(raw_url)
        except httpx.InvalidURL as e:
            raise InvalidTargetError(f"invalid API target {raw_url!r}: {e}") from e
        if not url.is_absolute_url or url.scheme not in ("http", "https") or not url.host:
            raise InvalidTargetError(f"API target {raw_url!r} is not an absolute http(s) URL")

        self._envelope = Envelope(method, url)
        self._stream_sent = False
        self._state = RequestState.READY
        return self

    def _attempt_envelope(self, envelope: Envelope) -> Envelope:
        if envelope.replayable:
            return envelope.try_clone()
        if self._stream_sent:
            raise UnreplayableBodyError("request cannot be retried: body is a stream")
        self._stream_sent = True
        return envelope

    async def _execute(
        self,
        envelope: Envelope,
        headers: httpx.Headers,
        form: MultipartForm | None,
    ) -> httpx.Response:
        with ExitStack() as stack:
            if form is not None:
                data, files = stack.enter_context(form.open())
                request = self.client.build_request(
                    envelope.method, envelope.url, headers=headers, data=data, files=files
                )
            else:
                request = self.client.build_request(
                    envelope.method, envelope.url, headers=headers, content=envelope.content
                )
            try:
                return await self.client.send(request)
            except httpx.TimeoutException as e:
                raise TransportTimeoutError(f"Controller timeout: {e}") from e
            except httpx.RequestError as e:
                raise TransportConnectionError(f"Controller connection error: {e}") from e
