"""Legacy query-string commands of the management API.

Every legacy command is a request to the API base URL whose meaning is carried
by the ``opt`` (``get``/``set``) and ``type`` query parameters. Responses look
like ``{"response": [{...}]}``; the first entry is the command result.
"""

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from core.api import ApiTarget
from core.exceptions import ApiError
from core.multipart import MultipartForm
from core.protocols import Authenticator
from core.request import AuthenticatedRequest

logger = logging.getLogger(__name__)

NODE_COUNT = 4


class LegacyHandler:
    """Issue legacy commands and decode their results."""

    def __init__(
        self,
        target: ApiTarget,
        auth: Authenticator,
        client: httpx.AsyncClient,
    ) -> None:
        self._target = target
        self._auth = auth
        self._client = client

    def request(self) -> AuthenticatedRequest:
        return AuthenticatedRequest(self._target, self._auth, self._client)

    async def info(self) -> dict[str, Any]:
        return await self._execute(self.request().get().add_query(opt="get", type="info"))

    async def power_status(self) -> dict[str, Any]:
        return await self._execute(self.request().get().add_query(opt="get", type="power"))

    async def set_power(self, nodes: dict[int, bool]) -> dict[str, Any]:
        """Switch nodes (1-based) on or off."""
        if not nodes:
            raise ValueError("no nodes given")
        params = {f"node{_check_node(node)}": int(on) for node, on in sorted(nodes.items())}
        request = self.request().get().add_query(opt="set", type="power", **params)
        return await self._execute(request)

    async def usb_status(self) -> dict[str, Any]:
        return await self._execute(self.request().get().add_query(opt="get", type="usb"))

    async def flash(self, node: int, image: Path) -> dict[str, Any]:
        """Upload an OS image to a node (1-based)."""
        form = MultipartForm().file("file", image)
        request = self.request().post().add_query(
            opt="set", type="flash", node=_check_node(node) - 1
        )
        request.attach_multipart(form)
        logger.info("Flashing %s to node %d", image, node)
        return await self._execute(request)

    async def _execute(self, request: AuthenticatedRequest) -> dict[str, Any]:
        response = await request.send()
        logger.debug("%s %s -> %s", request.envelope.method, request.url, response.status_code)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            self._auth.invalidate()

        if not response.is_success:
            raise ApiError(
                f"Controller returned {response.status_code}: {response.text or response.reason_phrase}",
                response.status_code,
                response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(
                f"API error: response is not JSON: {e}", response.status_code, response.text
            ) from e
        return first_result(data)


def first_result(data: Any) -> dict[str, Any]:
    """Extract the first entry of a legacy ``{"response": [...]}`` payload."""
    results = data.get("response") if isinstance(data, dict) else None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise ApiError("API error: Expected `response` attribute", httpx.codes.OK, json.dumps(data))
    return results[0]


def _check_node(node: int) -> int:
    if not 1 <= node <= NODE_COUNT:
        raise ValueError(f"node must be between 1 and {NODE_COUNT}, got {node}")
    return node
