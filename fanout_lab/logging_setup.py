"""Logging configuration for the fanout_lab package."""

import logging
import sys

_LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno, "")
        message = super().format(record)
        return f"{color}{message}{_RESET}" if color else message


def _normalize_level(level) -> int:
    if isinstance(level, int):
        return level
    if not isinstance(level, str):
        return logging.WARNING
    return logging._nameToLevel.get(level.upper(), logging.WARNING)


def configure_logging(level="WARNING", use_color: bool = True) -> logging.Logger:
    """Attach a single stderr handler to the ``fanout_lab`` logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    logger = logging.getLogger("fanout_lab")
    logger.setLevel(_normalize_level(level))

    for handler in list(logger.handlers):
        if getattr(handler, "_fanout_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    formatter_cls = ColorFormatter if use_color else logging.Formatter
    handler.setFormatter(formatter_cls(LOG_FORMAT))
    handler._fanout_handler = True
    logger.addHandler(handler)
    logger.propagate = False
    return logger
