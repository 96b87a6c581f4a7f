# src/claimcheck/core/strategies.py
"""Built-in send strategies.

These reproduce the default claim-check behavior:
- blob names are a configurable prefix plus a random UUID
- the queue body becomes the serialized Pointer
- payloads strictly larger than the threshold (in UTF-8 bytes) are offloaded
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping

from claimcheck.contracts.models import Pointer

__all__ = [
    "DefaultBlobNameResolver",
    "DefaultMessageBodyReplacer",
    "DefaultMessageSizeCriteria",
    "utf8_length",
]


def utf8_length(text: str) -> int:
    """Size of text on the wire, in bytes."""
    return len(text.encode("utf-8"))


class DefaultBlobNameResolver:
    """Prefix + random UUID. The message id argument is ignored."""

    def __init__(self, blob_key_prefix: str | None = "") -> None:
        self._prefix = blob_key_prefix or ""

    def resolve(self, message_id: str) -> str:
        return f"{self._prefix}{uuid.uuid4()}"


class DefaultMessageBodyReplacer:
    """Replaces the body with the pointer's JSON."""

    def replace(self, original_body: str, pointer: Pointer) -> str:
        return pointer.to_json()


class DefaultMessageSizeCriteria:
    """Offload when the body exceeds a byte threshold.

    The comparison is strictly greater-than: a body of exactly
    message_size_threshold bytes stays on the queue.
    """

    def __init__(self, message_size_threshold: int, always_through_blob: bool = False) -> None:
        self._threshold = message_size_threshold
        self._always_through_blob = always_through_blob

    @property
    def message_size_threshold(self) -> int:
        return self._threshold

    def should_offload(self, body: str, metadata: Mapping[str, str]) -> bool:
        if self._always_through_blob:
            return True
        return utf8_length(body) > self._threshold
