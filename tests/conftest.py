"""Shared fixtures."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """The CLI installs its own handler; undo it between tests."""
    yield
    logger = logging.getLogger("activitygraph")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
