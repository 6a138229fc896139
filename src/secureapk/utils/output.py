"""Terminal output: a rich console pair and logging setup for the CLI."""

import logging
from typing import Any

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.status import Status

LOG_FORMAT = "%(message)s"


class Console:
    """Scan results go to stdout, diagnostics to stderr.

    In JSON mode stdout is reserved for the JSON document, so decorated
    output is dropped; warnings and errors still reach stderr.
    """

    def __init__(self) -> None:
        self._out = RichConsole()
        self._err = RichConsole(stderr=True)
        self._json_mode = False

    def set_json_mode(self, enabled: bool) -> None:
        self._json_mode = enabled

    @property
    def json_mode(self) -> bool:
        return self._json_mode

    def print(self, *args: Any, **kwargs: Any) -> None:
        if not self._json_mode:
            self._out.print(*args, **kwargs)

    def print_success(self, message: str) -> None:
        self.print(f"[green]✓[/green] {message}")

    def print_warning(self, message: str) -> None:
        self._err.print(f"[yellow]⚠[/yellow] {message}")

    def print_error(self, message: str) -> None:
        self._err.print(f"[red]✗[/red] {message}")

    def status(self, message: str) -> Status:
        """Spinner shown on stderr while a job runs."""
        return self._err.status(message)

    def configure_logging(self, verbose: bool = False) -> None:
        """Route the secureapk logger through rich on stderr.

        Library modules only create loggers; handlers are installed here,
        once per CLI invocation.
        """
        handler = RichHandler(
            console=self._err,
            show_path=False,
            rich_tracebacks=verbose,
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

        logger = logging.getLogger("secureapk")
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
        logger.propagate = False


console = Console()
