from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Iterator

from colorlog import ColoredFormatter

LOG_FORMAT = "%(log_color)s%(levelname)s%(reset)s %(name)s: %(message)s"


def configure_logging(level: int) -> None:
    """Send sysglance log records to stderr, coloured by level."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ColoredFormatter(
            LOG_FORMAT,
            log_colors={
                "DEBUG": "blue",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)


def resolve_log_level(verbosity: int, fallback: str) -> int:
    if verbosity >= 1:
        return logging.DEBUG
    return logging.getLevelNamesMapping().get(fallback.upper(), logging.WARNING)


@contextmanager
def muted_console() -> Iterator[None]:
    """Silence root stream handlers while something else owns the terminal."""
    root = logging.getLogger()
    saved = [(h, h.level) for h in root.handlers if isinstance(h, logging.StreamHandler)]
    for handler, _ in saved:
        handler.setLevel(logging.CRITICAL + 1)
    try:
        yield
    finally:
        for handler, level in saved:
            handler.setLevel(level)
