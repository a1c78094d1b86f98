"""Pytest configuration and fixtures for autoload tests."""

from typing import Generator

import pytest

from otel_autoload.autoloader import reset


@pytest.fixture(autouse=True)
def reset_autoloader() -> Generator[None, None, None]:
    """Start and finish every test with a fresh autoloader and registry."""
    reset()
    yield
    reset()
