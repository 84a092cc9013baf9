import logging
from logging.config import dictConfig
from typing import Optional

LOG_LEVEL = "WARNING"

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "colored": {
            "()": "colorlog.ColoredFormatter",
            "format": (
                "%(log_color)s[%(asctime)s]%(reset)s "
                "%(log_color)s%(levelname)-8s%(reset)s - "
                "%(name)s [%(threadName)s] - %(message)s"
            ),
            "log_colors": {
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
            "reset": True,
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "colored",
            "level": "DEBUG",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "spanline": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configures the ``spanline`` logger hierarchy using LOGGING_CONFIG.
    Only runs once per session to avoid duplicate handlers; a later call with an
    explicit level only changes the level.

    Args:
        level (Optional[str]): Log level name overriding LOG_LEVEL. Defaults to None.

    Returns:
        None
    """
    global _configured
    if not _configured:
        dictConfig(LOGGING_CONFIG)
        _configured = True
    if level is not None:
        logging.getLogger("spanline").setLevel(level.upper())


def get_logger(name: str) -> logging.Logger:
    """
    Returns a configured logger instance for the given name.
    Ensures logging is configured before returning the logger.

    Args:
        name (str): The name of the logger to retrieve

    Returns:
        logging.Logger: A configured logger instance
    """
    configure_logging()
    return logging.getLogger(name)
