# src/claimcheck/contracts/strategies.py
"""Pluggable single-method strategies consulted during send.

Any object with the right method satisfies a protocol; there is no base
class to inherit. Defaults live in core/strategies.py.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from claimcheck.contracts.models import Pointer


@runtime_checkable
class BlobNameResolver(Protocol):
    """Chooses the blob name for an offloaded payload."""

    def resolve(self, message_id: str) -> str: ...


@runtime_checkable
class MessageBodyReplacer(Protocol):
    """Produces the queue body that stands in for an offloaded payload."""

    def replace(self, original_body: str, pointer: Pointer) -> str: ...


@runtime_checkable
class MessageSizeCriteria(Protocol):
    """Decides whether a message is offloaded to blob storage."""

    def should_offload(self, body: str, metadata: Mapping[str, str]) -> bool: ...
