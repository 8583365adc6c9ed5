"""Logging configuration for the Bakery CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route all logging through a Rich handler.

    Args:
        verbose: DEBUG level when True, WARNING otherwise
        console: Console to render log records on (stderr by default)
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )

    # httpx logs every request at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
