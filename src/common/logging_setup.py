from __future__ import annotations

import logging
import os
import sys
from typing import Optional


ENV_LOG_LEVEL = "LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level_name: Optional[str] = None) -> None:
    """Configure root logging to stdout once; later calls only adjust the level."""
    name = (level_name or os.getenv(ENV_LOG_LEVEL) or "INFO").upper()
    level = getattr(logging, name, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO
    root = logging.getLogger()
    if getattr(setup_logging, "_configured", False):
        root.setLevel(level)
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.handlers[:] = [handler]
    root.setLevel(level)
    setup_logging._configured = True  # type: ignore[attr-defined]
