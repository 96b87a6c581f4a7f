# src/claimcheck/contracts/errors.py
"""Error taxonomy for the claim-check client.

Every error raised across a module boundary derives from ClaimCheckError so
callers can catch the whole family with one clause. Azure SDK exceptions never
escape the transport adapters; they are converted to StoreError / QueueError /
NotFoundError there, with the SDK exception chained as __cause__.

Hierarchy:
    ClaimCheckError
    ├── TransientTransportError
    │   ├── StoreError
    │   └── QueueError
    ├── NotFoundError
    ├── ConfigurationError
    ├── CodecError
    ├── ValidationError
    └── MaxRetriesExceeded
"""

from __future__ import annotations


class ClaimCheckError(Exception):
    """Base class for all claim-check errors."""


class TransientTransportError(ClaimCheckError):
    """Network or throttling failure talking to the queue or blob service.

    Retryable. RetryPolicy absorbs these up to its attempt budget.
    """


class StoreError(TransientTransportError):
    """Blob transport call failed (upload, download, delete, list, SAS issue)."""


class QueueError(TransientTransportError):
    """Queue transport call failed (send, receive, peek, delete, properties)."""


class NotFoundError(ClaimCheckError):
    """The blob a pointer refers to does not exist.

    Tolerated (surfaced as a None body) when ignore_payload_not_found is set.
    """

    def __init__(self, container_name: str, blob_name: str) -> None:
        self.container_name = container_name
        self.blob_name = blob_name
        super().__init__(f"Payload not found: {container_name}/{blob_name}")


class ConfigurationError(ClaimCheckError):
    """A required collaborator is missing or the wiring is contradictory.

    Always fatal and never retried.
    """


class CodecError(ClaimCheckError):
    """Compressed or encoded payload could not be decoded."""


class ValidationError(ClaimCheckError):
    """Caller supplied an argument outside the accepted range."""


class MaxRetriesExceeded(ClaimCheckError):
    """Raised when the retry budget is exhausted.

    Attributes:
        attempts: Number of attempts made (equals max_attempts)
        last_error: Exception raised by the final attempt
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")
