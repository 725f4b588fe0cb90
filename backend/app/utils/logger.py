"""
Logging setup
---------------------------------
Features:
- Configures the root handler once (level from `LOG_LEVEL`)
- Exposes the shared `log` logger used by routers, services and scripts

Usage:
- `from ..utils.logger import log`
- `log.info("...")`
"""

import logging
import sys

from ..config.settings import LOG_LEVEL

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def _configure() -> logging.Logger:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(LOG_LEVEL)
    return logging.getLogger("citizen")


log = _configure()
