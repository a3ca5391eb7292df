"""
Logging configuration based on loguru.

Environment variables:
    PLUGBASE_LOG_LEVEL: Log level (TRACE/DEBUG/INFO/WARNING/ERROR/CRITICAL)

Usage:
    from plugbase.logging_config import configure_logging

    configure_logging()          # level from PLUGBASE_LOG_LEVEL, default INFO
    configure_logging("DEBUG")   # explicit level
"""

import os
import sys
from enum import Enum

from loguru import logger


class LogLevel(str, Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


FORMAT_CONSOLE = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[plugin]: <16}</cyan> | "
    "<level>{message}</level>"
)

_configured = False


def get_log_level(level: str | None = None) -> LogLevel:
    """Resolve a level from the argument or PLUGBASE_LOG_LEVEL, falling back to INFO."""
    value = (level or os.getenv("PLUGBASE_LOG_LEVEL", "INFO")).upper()
    try:
        return LogLevel(value)
    except ValueError:
        return LogLevel.INFO


def configure_logging(level: str | None = None, force: bool = False) -> None:
    """
    Replace loguru's default sink with a plugin-aware stderr sink.

    Records without a bound plugin show "host" in the plugin column.

    Args:
        level: Log level name; None reads PLUGBASE_LOG_LEVEL
        force: Reconfigure even if already configured
    """
    global _configured
    if _configured and not force:
        return

    logger.remove()
    logger.configure(extra={"plugin": "host"})
    logger.add(
        sys.stderr,
        format=FORMAT_CONSOLE,
        level=get_log_level(level).value,
        colorize=True,
    )
    _configured = True
