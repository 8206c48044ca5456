# src/neurodrill/logging_utils.py
from __future__ import annotations

# General imports (stdlib)
import logging
import os
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: Union[str, int, None] = None) -> None:
    """
    Configure root logging for command line runs.

    Use:
        Pipeline timing lines ("[ok] aggregate (12 ms)"), pruned branches and
        id collisions are emitted through module loggers; this routes them to
        stderr with one shared format.

    Args:
        level (str | int | None): Level name ("DEBUG", "INFO") or number. When
            None, `LOG_LEVEL` from the environment is used, then INFO. Unknown
            names fall back to INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
