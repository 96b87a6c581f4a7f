# src/claimcheck/contracts/models.py
"""Value types that cross module boundaries.

All types here are immutable after construction and safe to share between
threads without locking.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


@dataclass(frozen=True, slots=True)
class Pointer:
    """Claim-check reference to an offloaded payload.

    The only thing ever placed on the queue in place of an oversized body.
    Equality and hashing are by value.

    Wire format: {"containerName": "...", "blobName": "..."}
    """

    container_name: str
    blob_name: str

    def to_json(self) -> str:
        return json.dumps({"containerName": self.container_name, "blobName": self.blob_name})

    @classmethod
    def from_json(cls, text: str) -> Pointer:
        """Parse a serialized pointer.

        Raises:
            ValueError: If text is not a JSON object with string
                containerName and blobName fields.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Pointer is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Pointer must be a JSON object, got {type(data).__name__}")

        container_name = data.get("containerName")
        blob_name = data.get("blobName")
        if not isinstance(container_name, str) or not isinstance(blob_name, str):
            raise ValueError("Pointer requires string 'containerName' and 'blobName' fields")
        return cls(container_name=container_name, blob_name=blob_name)

    def __str__(self) -> str:
        return f"{self.container_name}/{self.blob_name}"


@dataclass(frozen=True, slots=True)
class Envelope:
    """Body plus side-channel metadata, as carried on the queue.

    The queue service has no native metadata field, so every message is
    wrapped. Internal marker keys appear in metadata only when body is a
    serialized Pointer.
    """

    body: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RawQueueMessage:
    """A message exactly as the queue transport returned it."""

    message_id: str
    body: str
    dequeue_count: int
    receipt: str


@dataclass(frozen=True, slots=True)
class ReceivedMessage:
    """A message after envelope parsing and payload resolution.

    Produced only by ClaimCheckClient.receive_messages(). pointer is set iff
    is_from_blob. body is None when the payload blob was missing and the
    client tolerates missing payloads. receipt must be presented together
    with message_id to delete the message.
    """

    message_id: str
    body: str | None
    metadata: dict[str, str]
    is_from_blob: bool
    pointer: Pointer | None
    dequeue_count: int
    receipt: str

    def __post_init__(self) -> None:
        if self.is_from_blob != (self.pointer is not None):
            raise ValueError("pointer must be set if and only if is_from_blob is True")

    def __repr__(self) -> str:
        body_length = len(self.body) if self.body is not None else 0
        return (
            f"ReceivedMessage(message_id={self.message_id!r}, body_length={body_length}, "
            f"is_from_blob={self.is_from_blob}, pointer={self.pointer}, dequeue_count={self.dequeue_count})"
        )


@dataclass(frozen=True, slots=True)
class DeadLetterRecord:
    """Envelope written to the dead-letter queue.

    Wire format: {"originalBody": ..., "deadLetterReason": ..., "deadLetteredAt": ISO-8601}
    """

    original_body: str
    reason: str
    dead_lettered_at: str

    def to_json(self) -> str:
        return json.dumps(
            {
                "originalBody": self.original_body,
                "deadLetterReason": self.reason,
                "deadLetteredAt": self.dead_lettered_at,
            }
        )

    @classmethod
    def from_json(cls, text: str) -> DeadLetterRecord:
        data: dict[str, Any] = json.loads(text)
        return cls(
            original_body=data["originalBody"],
            reason=data["deadLetterReason"],
            dead_lettered_at=data["deadLetteredAt"],
        )


class CleanupOutcome(StrEnum):
    """Result of a best-effort blob cleanup.

    Cleanup never raises; callers inspect the outcome and decide whether to log.
    """

    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        """True when the blob is gone after the call."""
        return self in (CleanupOutcome.DELETED, CleanupOutcome.ALREADY_ABSENT)
