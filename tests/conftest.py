# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Client tests run against the in-memory transports in
tests/fixtures/transports.py with a RetryPolicy whose sleep is a recorder,
so nothing in the default suite touches the network or sleeps. Tests that
need the Azurite emulator are marked @pytest.mark.integration and skip when
the emulator is unavailable.
"""

from __future__ import annotations

import os
import random
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from claimcheck.core.config import ClientSettings
from claimcheck.engine.client import ClaimCheckClient
from claimcheck.engine.dead_letter import DeadLetterSink
from claimcheck.engine.retry import RetryConfig, RetryPolicy
from tests.fixtures.azurite import azurite_names, azurite_service
from tests.fixtures.transports import InMemoryPayloadStore, InMemoryQueueTransport

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Timing varies on shared runners
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Client fixtures
# =============================================================================


class SleepRecorder:
    """Stands in for time.sleep; records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def queue() -> InMemoryQueueTransport:
    return InMemoryQueueTransport("orders")


@pytest.fixture
def store() -> InMemoryPayloadStore:
    return InMemoryPayloadStore("large-messages")


@pytest.fixture
def make_client(
    queue: InMemoryQueueTransport,
    store: InMemoryPayloadStore,
    sleep_recorder: SleepRecorder,
) -> Callable[..., ClaimCheckClient]:
    """Factory for clients wired to the in-memory transports.

    Keyword arguments are ClientSettings fields (snake_case), except
    dead_letter, payload_store and capability_reader which are passed
    to the client.
    """

    def _make(
        *,
        dead_letter: DeadLetterSink | None = None,
        payload_store: Any = store,
        capability_reader: Callable[[str], str | None] | None = None,
        **settings_fields: Any,
    ) -> ClaimCheckClient:
        settings_fields.setdefault("tracing_enabled", False)
        if dead_letter is not None:
            settings_fields.setdefault("dead_letter_enabled", True)
            settings_fields.setdefault("dead_letter_max_dequeue_count", dead_letter.max_dequeue_count)
        client_settings = ClientSettings(**settings_fields)
        retry = RetryPolicy(
            RetryConfig.from_settings(client_settings.retry),
            sleep=sleep_recorder,
            rng=random.Random(1234),
        )
        return ClaimCheckClient(
            queue,
            payload_store,
            client_settings,
            dead_letter_sink=dead_letter,
            capability_reader=capability_reader,
            retry_policy=retry,
        )

    return _make


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: requires the Azurite storage emulator")


__all__ = [
    "SleepRecorder",
    "azurite_names",
    "azurite_service",
    "make_client",
    "queue",
    "sleep_recorder",
    "store",
]
