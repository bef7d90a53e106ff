"""Pytest configuration and fixtures."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    """Capture debug output from the connector in every test."""
    caplog.set_level(logging.DEBUG, logger="bfx_connector")
