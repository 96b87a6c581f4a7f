# src/claimcheck/core/envelope.py
"""Queue envelope wire format.

Every queue message body is a JSON object:

    {"body": "<string>", "metadata": {"<key>": "<value>", ...}}

When a payload is offloaded, body is the serialized Pointer and metadata
carries the internal marker keys below. The key strings are fixed wire values shared
with other large-message clients reading the same queue.

A message that is not a valid envelope (legacy or foreign producer) is read
as a plain body with empty metadata. That is degradation, not an error.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from claimcheck.contracts.models import Envelope

__all__ = [
    "BLOB_POINTER_MARKER",
    "CAPABILITY_URI_KEY",
    "COMPRESSED_MARKER",
    "MARKER_TRUE",
    "ORIGINAL_SIZE_KEY",
    "RESERVED_METADATA_KEYS",
    "deserialize_envelope",
    "is_compressed",
    "is_offloaded",
    "serialize_envelope",
    "strip_internal_markers",
]

BLOB_POINTER_MARKER = "com.azure.storagequeue.largemessage.BlobPointer"
ORIGINAL_SIZE_KEY = "ExtendedPayloadSize"
COMPRESSED_MARKER = "com.azure.storagequeue.largemessage.Compressed"
CAPABILITY_URI_KEY = "BlobSasUri"

RESERVED_METADATA_KEYS: frozenset[str] = frozenset(
    {BLOB_POINTER_MARKER, ORIGINAL_SIZE_KEY, COMPRESSED_MARKER, CAPABILITY_URI_KEY}
)

MARKER_TRUE = "true"


def serialize_envelope(envelope: Envelope) -> str:
    return json.dumps({"body": envelope.body, "metadata": dict(envelope.metadata)})


def deserialize_envelope(raw: str) -> Envelope:
    """Parse a queue body into an Envelope, degrading to a plain body."""
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError:
        return Envelope(body=raw, metadata={})

    if not isinstance(data, dict) or not isinstance(data.get("body"), str):
        return Envelope(body=raw, metadata={})

    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        return Envelope(body=data["body"], metadata={})

    # Non-string values (null, numbers) from foreign producers are dropped
    return Envelope(body=data["body"], metadata={k: v for k, v in metadata.items() if isinstance(v, str)})


def is_offloaded(metadata: Mapping[str, str]) -> bool:
    return metadata.get(BLOB_POINTER_MARKER) == MARKER_TRUE


def is_compressed(metadata: Mapping[str, str]) -> bool:
    return metadata.get(COMPRESSED_MARKER) == MARKER_TRUE


def strip_internal_markers(metadata: Mapping[str, str]) -> dict[str, str]:
    """Copy of metadata without any reserved key."""
    return {k: v for k, v in metadata.items() if k not in RESERVED_METADATA_KEYS}
