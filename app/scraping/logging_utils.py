"""
Structured logging helpers for scraping workflows.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.

    Nothing is serialized when ``level`` is disabled for ``logger``.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


def elapsed_ms(started: float) -> int:
    """
    Milliseconds since a ``time.monotonic()`` reading.
    """

    return int((time.monotonic() - started) * 1000)
