# src/claimcheck/engine/dead_letter.py
"""DeadLetterSink: secondary queue for poison messages.

A message is poison once it has been dequeued max_dequeue_count times
without being deleted. ClaimCheckClient routes such messages here during
receive, before any envelope parsing or blob resolution, and then deletes
them from the primary queue.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog

from claimcheck.contracts.models import DeadLetterRecord
from claimcheck.contracts.transport import QueueTransport

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEQUEUE_COUNT = 5
DEAD_LETTER_SUFFIX = "-dlq"


def default_dead_letter_queue_name(primary_queue_name: str) -> str:
    return f"{primary_queue_name}{DEAD_LETTER_SUFFIX}"


class DeadLetterSink:
    """Wraps a QueueTransport bound to the dead-letter queue.

    The queue is created at construction if absent. A creation failure is
    logged, not raised; the first send will surface the problem.
    """

    def __init__(self, transport: QueueTransport, max_dequeue_count: int = DEFAULT_MAX_DEQUEUE_COUNT) -> None:
        if max_dequeue_count < 1:
            raise ValueError("max_dequeue_count must be >= 1")
        self._transport = transport
        self._max_dequeue_count = max_dequeue_count
        self._ensure_queue()

    @property
    def queue_name(self) -> str:
        return self._transport.queue_name

    @property
    def max_dequeue_count(self) -> int:
        return self._max_dequeue_count

    def should_dead_letter(self, dequeue_count: int) -> bool:
        return dequeue_count >= self._max_dequeue_count

    def send_to_dead_letter(self, original_body: str, reason: str) -> str:
        """Enqueue original_body with reason and a UTC timestamp.

        Returns:
            Message id assigned by the dead-letter queue

        Raises:
            QueueError: If the enqueue fails
        """
        record = DeadLetterRecord(
            original_body=original_body,
            reason=reason,
            dead_lettered_at=datetime.now(UTC).isoformat(),
        )
        message_id = self._transport.send(record.to_json())
        logger.warning(
            "Message moved to dead-letter queue",
            dead_letter_queue=self.queue_name,
            dead_letter_message_id=message_id,
            reason=reason,
        )
        return message_id

    def approximate_depth(self) -> int:
        """Approximate backlog of the dead-letter queue, or -1 if unavailable."""
        try:
            return self._transport.approximate_count()
        except Exception as e:
            logger.warning("Failed to read dead-letter queue depth", dead_letter_queue=self.queue_name, error=str(e))
            return -1

    def _ensure_queue(self) -> None:
        try:
            created = self._transport.create_if_not_exists()
        except Exception as e:
            logger.warning("Failed to ensure dead-letter queue exists", dead_letter_queue=self.queue_name, error=str(e))
            return
        if created:
            logger.info("Created dead-letter queue", dead_letter_queue=self.queue_name)
