# src/claimcheck/core/dedup.py
"""In-memory content-hash deduplication.

Single-process only. Entries are SHA-256 hex digests of the UTF-8 body,
held in strict LRU order: every check refreshes recency, and the least
recently touched entry is evicted when capacity is exceeded. An evicted
body is reported as new the next time it is seen.
"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict

import structlog

logger = structlog.get_logger(__name__)

__all__ = ["DEFAULT_CACHE_SIZE", "DeduplicationFilter", "content_hash"]

DEFAULT_CACHE_SIZE = 10_000


def content_hash(content: str) -> str:
    """SHA-256 hex digest of content encoded as UTF-8."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class DeduplicationFilter:
    """Bounded LRU set of content hashes.

    Thread-safe: a single lock guards the ordered map, and every critical
    section is O(1).

    Example:
        dedup = DeduplicationFilter(capacity=3)
        dedup.is_duplicate("a")  # False - first sighting, recorded
        dedup.is_duplicate("a")  # True
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._entries: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def is_duplicate(self, content: str) -> bool:
        """Check-and-insert.

        Returns:
            True if content was already in the cache, False if it was
            just added
        """
        digest = content_hash(content)
        with self._lock:
            if digest in self._entries:
                self._entries.move_to_end(digest)
                seen = True
            else:
                self._insert(digest)
                seen = False

        if seen:
            logger.debug("Duplicate message detected", hash_prefix=digest[:8])
        return seen

    def mark_seen(self, content: str) -> None:
        """Record content without checking."""
        digest = content_hash(content)
        with self._lock:
            if digest in self._entries:
                self._entries.move_to_end(digest)
            else:
                self._insert(digest)

    def discard(self, content: str) -> bool:
        """Forget content.

        Returns:
            True if content was cached
        """
        digest = content_hash(content)
        with self._lock:
            if digest not in self._entries:
                return False
            del self._entries[digest]
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Deduplication cache cleared")

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def _insert(self, digest: str) -> None:
        # Caller holds self._lock
        self._entries[digest] = None
        while len(self._entries) > self._capacity:
            self._entries.popitem(last=False)
