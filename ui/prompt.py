"""Interactive credential prompt."""

import sys

from rich.console import Console
from rich.prompt import Prompt

from core.exceptions import NoCredentialsError


class ConsolePrompt:
    """Ask for the controller's username and password on the terminal."""

    def __init__(self, console: Console | None = None, interactive: bool | None = None):
        self._console = console or Console(stderr=True)
        self._interactive = sys.stdin.isatty() if interactive is None else interactive

    def ask_credentials(self, username: str | None = None) -> tuple[str, str]:
        if not self._interactive:
            raise NoCredentialsError(
                "authentication required, but no credentials were given and stdin is not a terminal"
            )
        try:
            self._console.print("[bold]The controller requires authentication.[/bold]")
            user = Prompt.ask("Username", console=self._console, default=username or "root")
            password = Prompt.ask("Password", console=self._console, password=True)
        except (EOFError, KeyboardInterrupt) as e:
            raise NoCredentialsError("credential prompt declined") from e
        return user, password
