# src/claimcheck/plugins/azure/queue_transport.py
"""QueueTransport over Azure Queue Storage.

Message bodies are passed through as text; the claim-check envelope is
built above this layer. No message encode policy is applied, so the
envelope must fit the service's 64 KiB limit as-is; the offload threshold
exists to keep it there.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from claimcheck.contracts.errors import QueueError
from claimcheck.contracts.models import RawQueueMessage

if TYPE_CHECKING:
    from azure.storage.queue import QueueClient

logger = structlog.get_logger(__name__)


def _seconds(value: timedelta | None) -> int | None:
    if value is None:
        return None
    return max(int(value.total_seconds()), 0)


class AzureQueueTransport:
    """Thin adapter from QueueClient to the QueueTransport protocol."""

    def __init__(self, queue_client: QueueClient) -> None:
        self._client = queue_client

    @property
    def queue_name(self) -> str:
        name: str = self._client.queue_name
        return name

    def create_if_not_exists(self) -> bool:
        from azure.core.exceptions import AzureError, ResourceExistsError

        try:
            self._client.create_queue()
        except ResourceExistsError:
            return False
        except AzureError as e:
            raise QueueError(f"Failed to create queue {self.queue_name!r}: {e}") from e
        return True

    def send(self, body: str, *, visibility_delay: timedelta | None = None) -> str:
        from azure.core.exceptions import AzureError

        try:
            message = self._client.send_message(body, visibility_timeout=_seconds(visibility_delay))
        except AzureError as e:
            raise QueueError(f"Failed to send message to {self.queue_name!r}: {e}") from e
        message_id: str = message.id
        return message_id

    def receive(self, max_messages: int, *, visibility_timeout: timedelta | None = None) -> list[RawQueueMessage]:
        from azure.core.exceptions import AzureError

        try:
            # receive_messages pages lazily; max_messages bounds the page
            # size, not the total, so stop after max_messages items.
            pager = self._client.receive_messages(
                max_messages=max_messages,
                visibility_timeout=_seconds(visibility_timeout),
            )
            messages: list[RawQueueMessage] = []
            for message in pager:
                messages.append(
                    RawQueueMessage(
                        message_id=message.id,
                        body=message.content,
                        dequeue_count=message.dequeue_count or 0,
                        receipt=message.pop_receipt,
                    )
                )
                if len(messages) >= max_messages:
                    break
        except AzureError as e:
            raise QueueError(f"Failed to receive messages from {self.queue_name!r}: {e}") from e
        return messages

    def peek(self, max_messages: int) -> list[str]:
        from azure.core.exceptions import AzureError

        try:
            return [message.content for message in self._client.peek_messages(max_messages=max_messages)]
        except AzureError as e:
            raise QueueError(f"Failed to peek messages on {self.queue_name!r}: {e}") from e

    def delete(self, message_id: str, receipt: str) -> None:
        from azure.core.exceptions import AzureError

        try:
            self._client.delete_message(message_id, receipt)
        except AzureError as e:
            raise QueueError(f"Failed to delete message {message_id} from {self.queue_name!r}: {e}") from e

    def approximate_count(self) -> int:
        from azure.core.exceptions import AzureError

        try:
            properties = self._client.get_queue_properties()
        except AzureError as e:
            raise QueueError(f"Failed to read properties of {self.queue_name!r}: {e}") from e
        count: int = properties.approximate_message_count or 0
        return count
