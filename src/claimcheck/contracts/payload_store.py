# src/claimcheck/contracts/payload_store.py
"""PayloadStore protocol for offloaded message payloads.

This protocol defines the interface the client needs from blob storage:
- plugins/azure/blob_store.py (BlobPayloadStore implementation)
- tests/fixtures/transports.py (InMemoryPayloadStore)

Consolidated here so the engine depends on the contract, not on the Azure SDK.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable

from claimcheck.contracts.models import Pointer


@runtime_checkable
class PayloadStore(Protocol):
    """Protocol for payload storage backends."""

    @property
    def container_name(self) -> str:
        """Container every pointer from this store refers to."""
        ...

    def store(self, name: str, payload: str) -> Pointer:
        """Upload payload under name and return a pointer to it.

        Raises:
            StoreError: On transport failure
        """
        ...

    def retrieve(self, pointer: Pointer) -> str | None:
        """Download the payload a pointer refers to.

        Returns:
            The payload, or None if it is missing and the store tolerates
            missing payloads

        Raises:
            NotFoundError: If the payload is missing and not tolerated
            StoreError: On transport failure
        """
        ...

    def delete(self, pointer: Pointer) -> bool:
        """Delete the payload.

        Returns:
            True if the payload was deleted, False if it was already absent

        Raises:
            StoreError: On any transport failure other than absence
        """
        ...

    def cleanup_expired(self) -> int:
        """Delete every payload whose expiry metadata is in the past.

        Returns:
            Number of payloads deleted

        Raises:
            StoreError: Only if the container cannot be listed
        """
        ...

    def generate_capability_uri(self, pointer: Pointer, valid_for: timedelta) -> str:
        """Issue a time-bounded, read-only URI for one payload."""
        ...

    def retrieve_via_capability_uri(self, uri: str) -> str | None:
        """Download a payload using only a capability URI."""
        ...
