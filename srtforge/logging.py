"""Central logging configuration for SrtForge."""
from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int = logging.INFO, rich: bool = True) -> logging.Logger:
    """Configure and return the application logger.

    Third-party SDK loggers (oss2, dashscope, urllib3) stay at WARNING unless
    DEBUG is requested.
    """

    handlers: list[logging.Handler] = []
    if rich:
        handlers.append(
            RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=True,
                show_path=level <= logging.DEBUG,
            )
        )
    else:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
    )
    for noisy in ("oss2", "dashscope", "urllib3"):
        logging.getLogger(noisy).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    logger = logging.getLogger("srtforge")
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Retrieve a child logger beneath the SrtForge root logger."""

    root = logging.getLogger("srtforge")
    if name and name.startswith("srtforge."):
        name = name[len("srtforge."):]
    return root.getChild(name) if name else root
