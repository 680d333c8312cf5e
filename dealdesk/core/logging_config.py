"""
Logging Configuration Module.

This module provides the central logging configuration dictionary for the application.
Network addresses and API credentials that end up in log messages are masked
by the ``sensitive_data`` filter before any handler writes them.
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

# Get log level from environment or default to INFO
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING_CONFIG_BASE: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "detailed": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "filters": {
        "sensitive_data": {
            "()": "dealdesk.core.utils.logging.SensitiveDataFilter",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": LOG_LEVEL,
            "formatter": "standard",
            "filters": ["sensitive_data"],
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "dealdesk": {
            "level": LOG_LEVEL,
            "handlers": ["console"],
            "propagate": False,
        },
        "uvicorn": {
            "level": LOG_LEVEL,
            "handlers": ["console"],
            "propagate": False,
        },
        "redis": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
    },
}


def _with_file_handler(config: dict[str, Any], log_dir: str) -> dict[str, Any]:
    """Return a copy of ``config`` that also writes to a rotating file in ``log_dir``."""
    configured = {
        **config,
        "handlers": dict(config["handlers"]),
        "loggers": {name: dict(logger) for name, logger in config["loggers"].items()},
    }
    configured["handlers"]["file_handler"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "level": LOG_LEVEL,
        "formatter": "detailed",
        "filters": ["sensitive_data"],
        "filename": str(Path(log_dir) / "dealdesk.log"),
        "maxBytes": 10485760,  # 10MB
        "backupCount": 10,
        "encoding": "utf8",
    }
    for logger_config in configured["loggers"].values():
        logger_config["handlers"] = [*logger_config["handlers"], "file_handler"]
    return configured


# File logging is opt-in through LOG_DIR
LOGGING_CONFIG = (
    _with_file_handler(LOGGING_CONFIG_BASE, os.environ["LOG_DIR"])
    if os.getenv("LOG_DIR")
    else LOGGING_CONFIG_BASE.copy()
)


def setup_logging(config: dict[str, Any] | None = None, level: str | None = None) -> None:
    """
    Configure the logging system with the provided configuration or default.

    Args:
        config: Optional logging configuration dictionary to use instead of the default
        level: Optional level overriding the one baked into the configuration
    """
    if config is None:
        config = LOGGING_CONFIG

    if "file_handler" in config["handlers"]:
        Path(config["handlers"]["file_handler"]["filename"]).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(config)

    if level:
        logging.getLogger("dealdesk").setLevel(level)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configured successfully")
