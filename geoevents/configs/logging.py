"""Logging setup shared by scripts and services."""

import logging
from typing import Optional

from geoevents.configs.settings import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for command-line use.

    Args:
        level: Log level name; defaults to the LOG_LEVEL setting
    """
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)

    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
