"""Process-wide logging for the CodeMarket API."""
import logging
import sys
from typing import Optional, Union

from codemarket.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Chatty client libraries only report problems
QUIET_LOGGERS = ("sqlalchemy", "stripe", "httpx", "httpcore", "multipart")


def _resolve_level(level: Union[str, int, None]) -> int:
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: Optional[Union[str, int]] = None) -> int:
    """
    Send application logs to stdout and align the server loggers with them.

    ``level`` may be a name ("debug") or a number; it defaults to
    ``settings.LOG_LEVEL`` and falls back to INFO for unknown names.
    Returns the level applied.
    """
    log_level = _resolve_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logging.getLogger("codemarket").setLevel(log_level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(log_level)

    quiet_level = max(log_level, logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    return log_level
