"""Logging setup shared by the demo script and the web adapter."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stdout at ``level``, replacing earlier handlers."""
    resolved = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=resolved if isinstance(resolved, int) else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    if not isinstance(resolved, int):
        logging.getLogger(__name__).warning("Unknown log level %r, using INFO", level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
