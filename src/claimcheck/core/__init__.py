# src/claimcheck/core/__init__.py
"""Core building blocks: configuration, logging, and the I/O-free codecs.

Nothing in this package talks to a queue or blob service.
"""

from claimcheck.core.compression import CompressionCodec
from claimcheck.core.config import (
    ClaimCheckSettings,
    ClientSettings,
    LoggingSettings,
    RetrySettings,
    load_settings,
)
from claimcheck.core.dedup import DeduplicationFilter, content_hash
from claimcheck.core.strategies import (
    DefaultBlobNameResolver,
    DefaultMessageBodyReplacer,
    DefaultMessageSizeCriteria,
)

__all__ = [
    "ClaimCheckSettings",
    "ClientSettings",
    "CompressionCodec",
    "DeduplicationFilter",
    "DefaultBlobNameResolver",
    "DefaultMessageBodyReplacer",
    "DefaultMessageSizeCriteria",
    "LoggingSettings",
    "RetrySettings",
    "content_hash",
    "load_settings",
]
