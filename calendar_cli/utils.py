"""Utility functions for the calendar CLI."""
import logging
from datetime import date

from rich.console import Console
from rich.logging import RichHandler

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Route log records through the CLI console.

    Args:
        verbose: Show debug records from the calendar modules when True.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_day(value: str) -> date:
    """Parse a YYYY-MM-DD day, also accepting 'today' and 'tomorrow'.

    Args:
        value: Day string from the command line

    Returns:
        The parsed date

    Raises:
        SystemExit: If the value is not a valid day
    """
    lowered = value.strip().lower()
    if lowered == "today":
        return date.today()
    if lowered == "tomorrow":
        return date.fromordinal(date.today().toordinal() + 1)
    try:
        return date.fromisoformat(value)
    except ValueError:
        err_console.print(
            f"[red]Error:[/red] '{value}' is not a day (expected YYYY-MM-DD)."
        )
        raise SystemExit(1)
