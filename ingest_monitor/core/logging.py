"""Logging setup for command-line use.

Library modules only create ``logging.getLogger("ingest_monitor.<area>")``
loggers and never configure handlers; the CLI calls ``configure_logging``
once at startup.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach a stream handler to the ``ingest_monitor`` logger.

    Idempotent: repeated calls adjust the level without stacking handlers.
    """
    root = logging.getLogger("ingest_monitor")
    root.setLevel(level)
    if not any(getattr(h, "_ingest_monitor", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._ingest_monitor = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root
