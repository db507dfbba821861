"""CLI entry point for tpi."""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import httpx
from rich.console import Console
from rich.table import Table

from auth import NoAuthRequired, TokenAuthenticator, TokenCache
from core.api import ApiTarget
from core.config import CONFIG_FILE, Config, load_config
from core.exceptions import ConfigurationError, TpiError
from core.protocols import Authenticator
from services.legacy import NODE_COUNT, LegacyHandler
from services.transport import create_client
from ui.log_utils import configure_logging
from ui.prompt import ConsolePrompt

console = Console()
err_console = Console(stderr=True)


@dataclass
class Session:
    """Settings for one invocation, after command-line overrides."""

    config: Config
    token: str | None = None
    password: str | None = None
    verbose: bool = False

    @property
    def target(self) -> ApiTarget:
        return ApiTarget.from_host(self.config.api.host, self.config.api.scheme)

    async def run(self, action: Callable[[LegacyHandler], Awaitable[Any]]) -> Any:
        """Run ``action`` with a handler bound to a fresh client."""
        async with create_client(self.config.transport, verbose=self.verbose) as client:
            target = self.target
            auth = build_authenticator(self, target, client)
            return await action(LegacyHandler(target, auth, client))


def build_authenticator(
    session: Session,
    target: ApiTarget,
    client: httpx.AsyncClient,
) -> Authenticator:
    """Select the authentication mode once for the whole invocation."""
    settings = session.config.auth
    if settings.mode == "trusted":
        return NoAuthRequired()
    return TokenAuthenticator.from_settings(
        settings,
        target,
        client,
        ConsolePrompt(),
        token=session.token,
        password=session.password,
    )


def _run(session: Session, action: Callable[[LegacyHandler], Awaitable[Any]]) -> Any:
    try:
        return asyncio.run(session.run(action))
    except TpiError as e:
        err_console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)


def _print_result(title: str, result: dict[str, Any]) -> None:
    if set(result) == {"result"}:
        console.print(str(result["result"]))
        return
    table = Table(title=title, show_header=False)
    table.add_column("key", style="bold")
    table.add_column("value")
    for key, value in result.items():
        table.add_row(str(key), str(value))
    console.print(table)


@click.group()
@click.option("--host", envvar="TPI_HOST", help="Controller host name or address")
@click.option("--user", envvar="TPI_USERNAME", help="Username for authentication")
@click.option("--password", envvar="TPI_PASSWORD", help="Password for authentication")
@click.option("--token", envvar="TPI_TOKEN", help="Pre-supplied bearer token")
@click.option("--trusted", is_flag=True, help="Never authenticate (running on the controller)")
@click.option("--no-cache", is_flag=True, help="Do not read or write the token cache")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=CONFIG_FILE,
    show_default=True,
    help="Configuration file",
)
@click.option("-v", "--verbose", is_flag=True, help="Log HTTP traffic")
@click.version_option("0.1.0", prog_name="tpi")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    user: str | None,
    password: str | None,
    token: str | None,
    trusted: bool,
    no_cache: bool,
    config_file: Path,
    verbose: bool,
) -> None:
    """Manage a board-management controller over its HTTP API."""
    configure_logging(verbose)
    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        err_console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)

    if host:
        config.api.host = host
    if user:
        config.auth.username = user
    if trusted:
        config.auth.mode = "trusted"
    if no_cache:
        config.auth.cache_token = False

    ctx.obj = Session(config, token=token, password=password, verbose=verbose)


@main.command()
@click.pass_obj
def info(session: Session) -> None:
    """Show controller information."""
    _print_result("Controller", _run(session, lambda handler: handler.info()))


@main.group()
def power() -> None:
    """Node power control."""


@power.command("status")
@click.pass_obj
def power_status(session: Session) -> None:
    """Show the power state of every node."""
    _print_result("Power", _run(session, lambda handler: handler.power_status()))


def _switch(session: Session, nodes: tuple[int, ...], on: bool) -> None:
    selected = nodes or tuple(range(1, NODE_COUNT + 1))
    result = _run(session, lambda handler: handler.set_power({node: on for node in selected}))
    _print_result("Power", result)


@power.command("on")
@click.option("--node", "-n", "nodes", type=click.IntRange(1, NODE_COUNT), multiple=True)
@click.pass_obj
def power_on(session: Session, nodes: tuple[int, ...]) -> None:
    """Power nodes on (all nodes by default)."""
    _switch(session, nodes, True)


@power.command("off")
@click.option("--node", "-n", "nodes", type=click.IntRange(1, NODE_COUNT), multiple=True)
@click.pass_obj
def power_off(session: Session, nodes: tuple[int, ...]) -> None:
    """Power nodes off (all nodes by default)."""
    _switch(session, nodes, False)


@main.command()
@click.pass_obj
def usb(session: Session) -> None:
    """Show the USB routing state."""
    _print_result("USB", _run(session, lambda handler: handler.usb_status()))


@main.command()
@click.option("--node", "-n", type=click.IntRange(1, NODE_COUNT), required=True)
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def flash(session: Session, node: int, image: Path) -> None:
    """Flash an OS image onto a node."""
    _print_result("Flash", _run(session, lambda handler: handler.flash(node, image)))


@main.group("auth")
def auth_group() -> None:
    """Bearer token management."""


@auth_group.command()
@click.pass_obj
def logout(session: Session) -> None:
    """Forget the cached bearer token."""
    TokenCache(session.config.auth.token_file).delete()
    console.print("[green]Logged out[/green]")


if __name__ == "__main__":
    main()
