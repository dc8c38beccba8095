"""
Logging configuration for the audience filter API.

Console output with coloured level names; every module asks for its
logger through get_logger(__name__).
"""

import logging
import sys

#colour codes for console output
class LogColours:
    RESET = "\033[0m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    GRAY = "\033[90m"


LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

#client libraries that log every request at INFO
NOISY_LOGGERS = ("elastic_transport", "elasticsearch", "httpx", "httpcore", "openai", "asyncio")


class ColouredFormatter(logging.Formatter):
    """Formatter that colours the level name."""

    COLOURS = {
        logging.DEBUG: LogColours.GRAY,
        logging.INFO: LogColours.BLUE,
        logging.WARNING: LogColours.YELLOW,
        logging.ERROR: LogColours.RED,
        logging.CRITICAL: LogColours.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        colour = self.COLOURS.get(record.levelno)
        if colour:
            record.levelname = f"{colour}{levelname}{LogColours.RESET}"

        try:
            return super().format(record)
        finally:
            #records are shared between handlers
            record.levelname = levelname


def setup_logging(level: str = "INFO", use_colours: bool = True) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colours: Colour the level names (disable when logging to a file)

    Example:
        >>> setup_logging("DEBUG")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)

    formatter_cls = ColouredFormatter if use_colours else logging.Formatter
    console_handler.setFormatter(formatter_cls(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    #force=True replaces handlers installed by uvicorn
    logging.basicConfig(level=log_level, handlers=[console_handler], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Allocating 5 terms")
    """
    return logging.getLogger(name)


def init_logging(debug: bool = False) -> None:
    """Quick setup: DEBUG when debug is set, INFO otherwise."""
    setup_logging(level="DEBUG" if debug else "INFO")
