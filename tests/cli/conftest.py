# tests/cli/conftest.py
"""Shared fixtures for CLI tests."""

from collections.abc import Iterator

import pytest

from claimcheck.core.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Rebind the log handler after each invoke.

    The CLI configures logging against CliRunner's stderr, which is closed
    once invoke() returns.
    """
    yield
    configure_logging()
