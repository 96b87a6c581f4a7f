# src/claimcheck/contracts/transport.py
"""QueueTransport protocol for the raw message queue.

The client never talks to a queue SDK directly. Implementations:
- plugins/azure/queue_transport.py (AzureQueueTransport over Azure Queue Storage)
- tests/fixtures/transports.py (InMemoryQueueTransport)

Implementations convert SDK failures to QueueError.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable

from claimcheck.contracts.models import RawQueueMessage


@runtime_checkable
class QueueTransport(Protocol):
    """Protocol for a string-bodied message queue with visibility timeouts."""

    @property
    def queue_name(self) -> str:
        """Name of the underlying queue."""
        ...

    def create_if_not_exists(self) -> bool:
        """Create the queue if absent.

        Returns:
            True if the queue was created, False if it already existed
        """
        ...

    def send(self, body: str, *, visibility_delay: timedelta | None = None) -> str:
        """Enqueue body and return the assigned message id."""
        ...

    def receive(self, max_messages: int, *, visibility_timeout: timedelta | None = None) -> list[RawQueueMessage]:
        """Dequeue up to max_messages, hiding them for visibility_timeout."""
        ...

    def peek(self, max_messages: int) -> list[str]:
        """Return up to max_messages bodies without dequeuing them."""
        ...

    def delete(self, message_id: str, receipt: str) -> None:
        """Remove a dequeued message."""
        ...

    def approximate_count(self) -> int:
        """Approximate number of messages in the queue."""
        ...
