"""
Utilities for CH-JAX: logging setup.
"""

from chjax.utils.logging_config import (
    configure_logging,
    get_logger,
    get_logging_status,
    set_log_level,
    setup_from_environment,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "get_logging_status",
    "set_log_level",
    "setup_from_environment",
]
