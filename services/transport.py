"""Shared HTTP transport for controller requests."""

import httpx

from core.config import TransportSettings
from ui.log_utils import log_request, log_response


def create_client(
    settings: TransportSettings,
    *,
    verbose: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the pooled client shared by every request of one invocation."""
    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
    )
    event_hooks = {"request": [log_request], "response": [log_response]} if verbose else {}
    return httpx.AsyncClient(
        timeout=settings.timeout,
        limits=limits,
        verify=settings.verify_tls,
        event_hooks=event_hooks,
        transport=transport,
    )
