"""Logging configuration for the web app and CLI."""

import logging
import os
from typing import Optional, Union


def setup_logging(level: Union[int, str, None] = None, log_file: Optional[str] = None) -> None:
    """
    Configure the root logger with a basic formatter.

    level defaults to $FLEETDOCS_LOG_LEVEL, then INFO.
    """
    if level is None:
        level = os.environ.get("FLEETDOCS_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
