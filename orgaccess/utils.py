"""
Shared helpers: logging setup and UTC time handling.
"""
import logging
import sys
from datetime import datetime, timezone

from orgaccess.core import config


_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger under the package root logger.

    The root ``orgaccess`` logger gets a single stream handler the first time
    this is called; the level comes from ``LOG_LEVEL``.

    Usage:
        log = get_logger(__name__)
        log.info("Organization %s created", org.id)
    """
    global _configured
    if not _configured:
        root = logging.getLogger("orgaccess")
        if not root.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(_LOG_FORMAT))
            root.addHandler(handler)
        root.setLevel(config.LOG_LEVEL)
        _configured = True
    return logging.getLogger(name)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime read back from the database to aware UTC.

    SQLite drops tzinfo on the way out, so naive values are taken as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
