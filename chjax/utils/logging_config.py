"""
Logging configuration for CH-JAX.

All package loggers live under the "chjax" namespace. The package itself only
attaches a NullHandler; applications opt in with configure_logging() or
setup_from_environment().
"""

import logging
import logging.config
import os
from typing import Any

ROOT_LOGGER = "chjax"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the package namespace.

    Args:
        name: Logger name relative to the package (e.g. "core.solver")

    Returns:
        Logger named "chjax.<name>"
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str = "INFO", format_type: str = "console") -> None:
    """
    Install a stream handler on the package logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "console" (compact) or "detailed" (with source location)
    """
    level = level.upper()
    if format_type not in ("console", "detailed"):
        raise ValueError(f"Unknown log format: {format_type!r}. Use 'console' or 'detailed'")

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s | %(name)-20s | %(levelname)-8s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s | %(name)-20s | %(levelname)-8s | "
                    "%(filename)s:%(lineno)d | %(funcName)s | %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": format_type,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            ROOT_LOGGER: {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
            # XLA compilation chatter
            "jax": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def setup_from_environment() -> None:
    """
    Configure logging from environment variables.

    Environment Variables:
        CHJAX_LOG_LEVEL: Log level (default: INFO)
        CHJAX_LOG_FORMAT: "console" or "detailed" (default: console)
    """
    configure_logging(
        level=os.getenv("CHJAX_LOG_LEVEL", "INFO"),
        format_type=os.getenv("CHJAX_LOG_FORMAT", "console"),
    )


def set_log_level(level: str) -> None:
    """Adjust the package log level at runtime."""
    logging.getLogger(ROOT_LOGGER).setLevel(getattr(logging, level.upper()))


def get_logging_status() -> dict[str, Any]:
    """Current level and handler count of the package logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    return {
        "level": logging.getLevelName(logger.level),
        "handlers_count": len(logger.handlers),
        "propagate": logger.propagate,
    }
