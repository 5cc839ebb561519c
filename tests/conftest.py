"""Shared pytest fixtures."""

from __future__ import annotations

import logging

import pytest

from nocturne_installer.core.logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_installer_logger():
    """Undo configure_logging() between tests so caplog keeps working."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
