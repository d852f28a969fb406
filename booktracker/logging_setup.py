import logging
from typing import Optional

_configured = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the package logger.

    Safe to call more than once; only the level is updated on later calls.
    """
    global _configured
    logger = logging.getLogger("booktracker")
    logger.setLevel((level or "INFO").upper())
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    _configured = True
