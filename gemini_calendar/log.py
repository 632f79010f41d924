# gemini_calendar/log.py
"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys

_INITIALIZED = False


def configure_logging(level: str = "WARNING") -> None:
    """
    Attach a single stderr handler to the root logger.

    stdout is reserved for the RESP:/CALL: conversation lines, so log output
    goes to stderr. Calling this twice only adjusts the level.
    """
    global _INITIALIZED

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if _INITIALIZED:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # googleapiclient logs every discovery cache miss at WARNING.
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

    _INITIALIZED = True
    logging.getLogger(__name__).debug("Logging configured at %s", level.upper())
