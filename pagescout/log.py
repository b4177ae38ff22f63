"""Logging setup for the command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route log records through rich.

    Args:
        verbose: Show DEBUG records from pagescout.
        console: Console to log to (stderr by default).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
