"""Conftest for unit tests: keep library debug logging visible on failures."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _debug_logging(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="schematic_records")
