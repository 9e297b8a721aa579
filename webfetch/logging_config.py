"""Logging setup shared by the HTTP app and the CLI.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed here, once, by whichever entry point is running.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def setup_logging(level: str | int = logging.INFO, stream: Optional[TextIO] = None) -> None:
    """Install a single handler on the root logger, writing to *stream* (stdout by default).

    Safe to call more than once: existing root handlers are removed first so
    messages are never duplicated.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = ["setup_logging"]
