"""Root pytest fixtures for streamwork tests."""

from __future__ import annotations

import shutil
from collections.abc import Iterator

import pytest

from streamwork.config import set_config


@pytest.fixture(autouse=True)
def reset_config() -> Iterator[None]:
    """Drop any configuration installed by a test."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def require_binary():
    """Skip the test when a command line tool is not installed."""

    def _require(name: str) -> str:
        path = shutil.which(name)
        if path is None:
            pytest.skip(f"{name} is not installed")
        return path

    return _require


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "posix: test relies on POSIX command line tools (head, cat, sh)",
    )
