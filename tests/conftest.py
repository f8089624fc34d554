"""PyTest configuration shared by the asyncarray tests."""

import logging
import pytest
from asyncarray.util.config import reset_config

logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def fresh_config():
    """Drop any cached configuration so each test reads its own environment."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers and levels that configure_logger() put on the package logger."""
    package_logger = logging.getLogger("asyncarray")
    handlers, level = list(package_logger.handlers), package_logger.level
    yield
    for handler in package_logger.handlers:
        if handler not in handlers:
            handler.close()
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
