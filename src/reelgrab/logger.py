"""Logging helpers for reelgrab.

Wraps the standard ``logging`` package with a few extra levels and
formatting helpers so call sites can write ``logger.success(...)``.
"""

import logging
import sys
from urllib.parse import urlsplit, urlunsplit

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[37m",
    SUCCESS: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"

_logger_instance: logging.Logger | None = None


class ColorFormatter(logging.Formatter):
    """Formatter adding ANSI colours to the level name on TTYs."""

    def __init__(self, use_color: bool) -> None:
        super().__init__("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if self.use_color:
            color = _COLORS.get(record.levelno, "")
            return f"{color}{message}{_RESET}"
        return message


def init_logger(level: str = "info") -> logging.Logger:
    """Initialize the global reelgrab logger.

    Args:
        level: Log level name (debug, info, warning, error).

    Returns:
        logging.Logger: The configured logger.
    """
    global _logger_instance
    instance = logging.getLogger("reelgrab")
    instance.setLevel(level.upper())
    instance.propagate = False

    for handler in list(instance.handlers):
        instance.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter(use_color=sys.stdout.isatty()))
    instance.addHandler(handler)

    _logger_instance = instance
    return instance


def get_logger() -> logging.Logger:
    """Get the global logger, initializing it with defaults if needed."""
    if _logger_instance is None:
        return init_logger()
    return _logger_instance


def debug(msg: str, *args) -> None:
    get_logger().debug(msg, *args)


def info(msg: str, *args) -> None:
    get_logger().info(msg, *args)


def success(msg: str, *args) -> None:
    get_logger().log(SUCCESS, msg, *args)


def warning(msg: str, *args) -> None:
    get_logger().warning(msg, *args)


def error(msg: str, *args) -> None:
    get_logger().error(msg, *args)


def exception(msg: str, *args) -> None:
    get_logger().exception(msg, *args)


def header(msg: str, *args) -> None:
    """Log a prominent header line."""
    get_logger().info("=" * 8 + " " + msg + " " + "=" * 8, *args)


def section(msg: str, *args) -> None:
    """Log a section separator line."""
    get_logger().info("-- " + msg, *args)


def redact_url_password(url: str) -> str:
    """Replace the password and api key parts of a URL with asterisks.

    Args:
        url: URL that may contain credentials.

    Returns:
        str: URL safe for logging.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    netloc = parts.netloc
    if parts.password:
        netloc = netloc.replace(f":{parts.password}@", ":****@", 1)

    query = "&".join(
        f"{key}=****" if key.lower() in ("apikey", "api_key", "passkey") else pair
        for pair in parts.query.split("&")
        if pair
        for key in [pair.split("=", 1)[0]]
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))
