"""
Logging setup for processes that embed the connectors package.
"""

from __future__ import annotations

import logging
import sys

from config.settings import config

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s — %(message)s"


def configure_logging(debug: bool | None = None) -> None:
    """Install the root handler and quiet the HTTP client loggers."""
    if debug is None:
        debug = config.debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=_FORMAT,
        stream=sys.stdout,
    )
    for _noisy in ("httpcore", "httpx", "urllib3", "oauthlib"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)
