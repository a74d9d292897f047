"""Logging configuration for hydrasect."""

import logging
import sys

from .colors import Colors

LOGGER_NAME = "hydrasect"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors based on log level."""

    LEVEL_COLORS = {
        logging.DEBUG: "DIM",
        logging.INFO: "CYAN",
        logging.WARNING: "YELLOW",
        logging.ERROR: "RED",
        logging.CRITICAL: "BG_RED",
    }

    def format(self, record):
        color = getattr(Colors, self.LEVEL_COLORS.get(record.levelno, "RESET"))
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{Colors.RESET}"
        if record.levelno >= logging.WARNING:
            record.msg = f"{color}{record.getMessage()}{Colors.RESET}"
            record.args = None
        return super().format(record)


def setup_logging(verbose: bool = False, stream=None) -> logging.Logger:
    """Set up logging with optional verbose mode.

    Diagnostics go to stderr so that stdout only carries commit hashes.

    Args:
        verbose: If True, show DEBUG level messages with level prefix.
                 If False, show INFO+ messages without prefix.
        stream: Stream to log to (default: stderr).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()
    logger.propagate = False

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Only show level prefix in verbose mode
    if verbose:
        fmt = "%(levelname)s %(message)s"
    else:
        fmt = "%(message)s"
    handler.setFormatter(ColoredFormatter(fmt))

    logger.addHandler(handler)
    return logger
