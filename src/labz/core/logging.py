"""Logging setup for the CLI and library consumers."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingSettings


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    level: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Configure the ``labz`` logger hierarchy.

    Args:
        settings: Logging settings (defaults read from the environment)
        level: Explicit level overriding the settings
        console: Console for the rich handler (stderr by default)
    """
    settings = settings or LoggingSettings()
    level_name = (level or settings.level).upper()

    if settings.format == "plain":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s"
        ))
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )

    logger = logging.getLogger("labz")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level_name, logging.WARNING))
    logger.propagate = False
