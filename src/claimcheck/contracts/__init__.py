"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine/plugins.
Settings classes are NOT re-exported here - import them from claimcheck.core.config.

Import patterns:
    from claimcheck.contracts import Pointer, ReceivedMessage, QueueTransport
    from claimcheck.core.config import ClientSettings
"""

from claimcheck.contracts.errors import (
    ClaimCheckError,
    CodecError,
    ConfigurationError,
    MaxRetriesExceeded,
    NotFoundError,
    QueueError,
    StoreError,
    TransientTransportError,
    ValidationError,
)
from claimcheck.contracts.models import (
    CleanupOutcome,
    DeadLetterRecord,
    Envelope,
    Pointer,
    RawQueueMessage,
    ReceivedMessage,
)
from claimcheck.contracts.payload_store import PayloadStore
from claimcheck.contracts.strategies import BlobNameResolver, MessageBodyReplacer, MessageSizeCriteria
from claimcheck.contracts.transport import QueueTransport

__all__ = [
    "BlobNameResolver",
    "ClaimCheckError",
    "CleanupOutcome",
    "CodecError",
    "ConfigurationError",
    "DeadLetterRecord",
    "Envelope",
    "MaxRetriesExceeded",
    "MessageBodyReplacer",
    "MessageSizeCriteria",
    "NotFoundError",
    "PayloadStore",
    "Pointer",
    "QueueError",
    "QueueTransport",
    "RawQueueMessage",
    "ReceivedMessage",
    "StoreError",
    "TransientTransportError",
    "ValidationError",
]
