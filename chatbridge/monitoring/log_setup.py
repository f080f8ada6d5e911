"""Logging setup for the relay and agent processes."""
from __future__ import annotations

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("discord", "discord.gateway", "discord.http", "aiohttp.access", "websockets", "httpx")


def setup_logging(
    level: str | int = "INFO",
    format_type: Literal["colored", "plain"] = "colored",
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name or number
        format_type: "colored" renders through rich, "plain" is one line per record

    Returns:
        The configured root logger
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
        level = numeric

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if format_type == "colored":
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root
