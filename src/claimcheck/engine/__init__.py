# src/claimcheck/engine/__init__.py
"""Claim-check engine: the client and the policies it composes.

- ClaimCheckClient: send/receive/delete with transparent offload
- RetryPolicy: exponential backoff with jitter (tenacity)
- DeadLetterSink: poison message routing
- SpanFactory: OpenTelemetry integration

Example:
    from claimcheck.engine import ClaimCheckClient

    client = ClaimCheckClient(queue_transport, payload_store)
    client.send_message(large_body)
"""

from claimcheck.engine.client import MAX_BATCH_SIZE, MIN_BATCH_SIZE, ClaimCheckClient
from claimcheck.engine.dead_letter import DeadLetterSink, default_dead_letter_queue_name
from claimcheck.engine.retry import RetryConfig, RetryPolicy
from claimcheck.engine.spans import NoOpSpan, SpanFactory

__all__ = [
    "MAX_BATCH_SIZE",
    "MIN_BATCH_SIZE",
    "ClaimCheckClient",
    "DeadLetterSink",
    "NoOpSpan",
    "RetryConfig",
    "RetryPolicy",
    "SpanFactory",
    "default_dead_letter_queue_name",
]
