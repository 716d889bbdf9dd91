"""
Tests for the package logging setup.
"""

import logging

import pytest

from chjax.utils.logging_config import (
    ROOT_LOGGER,
    configure_logging,
    get_logger,
    get_logging_status,
    set_log_level,
    setup_from_environment,
)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo configure_logging() so other modules keep propagating to caplog."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers = list(logger.handlers)
    level, propagate = logger.level, logger.propagate
    yield
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_namespace():
    assert get_logger("core.solver").name == "chjax.core.solver"


def test_package_is_silent_by_default():
    import chjax  # noqa: F401

    handlers = logging.getLogger(ROOT_LOGGER).handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_configure_logging():
    configure_logging(level="debug", format_type="detailed")

    status = get_logging_status()
    assert status["level"] == "DEBUG"
    assert status["handlers_count"] == 1
    assert status["propagate"] is False
    assert logging.getLogger("jax").level == logging.WARNING


def test_configure_logging_is_idempotent():
    configure_logging()
    configure_logging()
    assert get_logging_status()["handlers_count"] == 1


def test_unknown_format():
    with pytest.raises(ValueError, match="Unknown log format"):
        configure_logging(format_type="json")


def test_set_log_level():
    configure_logging(level="INFO")
    set_log_level("warning")
    assert get_logging_status()["level"] == "WARNING"


def test_setup_from_environment(monkeypatch):
    monkeypatch.setenv("CHJAX_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("CHJAX_LOG_FORMAT", "console")

    setup_from_environment()

    assert get_logging_status()["level"] == "ERROR"


def test_child_loggers_reach_handler(capsys):
    configure_logging(level="INFO")
    get_logger("core.solver").info("hello from the solver")

    assert "hello from the solver" in capsys.readouterr().out
