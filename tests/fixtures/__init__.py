# tests/fixtures/__init__.py
"""Shared pytest fixtures for claimcheck tests.

Available fixtures:
- azurite_service / azurite_names: Azurite blob + queue emulator
- InMemoryQueueTransport / InMemoryPayloadStore: protocol fakes
"""

from tests.fixtures.azurite import azurite_names, azurite_service
from tests.fixtures.transports import InMemoryPayloadStore, InMemoryQueueTransport

__all__ = [
    "InMemoryPayloadStore",
    "InMemoryQueueTransport",
    "azurite_names",
    "azurite_service",
]
