"""Shared logging utilities."""

import logging

import httpx
from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("tpi.http")


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route log records through rich on stderr."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=verbose,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
    )
    # httpx/httpcore debug output is too noisy; request hooks cover it
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def log_request(request: httpx.Request) -> None:
    """httpx event hook: log an outgoing request."""
    logger.debug(
        "-> %s %s %s",
        request.method,
        request.url,
        redact_headers(dict(request.headers)),
    )


async def log_response(response: httpx.Response) -> None:
    """httpx event hook: log a received response."""
    request = response.request
    logger.debug("<- %s %s %s", response.status_code, request.method, request.url)


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers.items():
        if "key" in key.lower() or "authorization" in key.lower() or "cookie" in key.lower():
            redacted[key] = mask(value)
        else:
            redacted[key] = value
    return redacted


def mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]
