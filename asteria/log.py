"""Logging setup shared by the client and the server."""

from __future__ import annotations

import logging

__all__ = ["init_logging"]

_FORMAT = "%(asctime)s %(levelname)5s %(message)s"


def init_logging(level: int = logging.INFO) -> None:
    """Send log records to standard error as time, level and message."""
    logging.basicConfig(level=level, format=_FORMAT, force=True)