# src/claimcheck/core/compression.py
"""GZIP compression for offloaded payloads.

Blob payloads are stored as UTF-8 text, so compressed bytes are base64
encoded before upload (compress_to_text) and decoded after download
(decompress_from_text).

Round-trip law: decompress(compress(x)) == x for every str x, including ""
and multi-byte text. Compression ratio is not guaranteed for dense input.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import zlib

import structlog

from claimcheck.contracts.errors import CodecError

logger = structlog.get_logger(__name__)

__all__ = ["CompressionCodec"]

_ENCODING = "utf-8"


class CompressionCodec:
    """Stateless GZIP + base64 codec.

    Instances carry no state; one instance may be shared across threads.
    """

    def compress(self, text: str) -> bytes:
        raw = text.encode(_ENCODING)
        compressed = gzip.compress(raw)
        logger.debug("Compressed payload", original_bytes=len(raw), compressed_bytes=len(compressed))
        return compressed

    def decompress(self, data: bytes) -> str:
        """Inverse of compress().

        Raises:
            CodecError: If data is not a valid GZIP stream of UTF-8 text.
        """
        try:
            return gzip.decompress(data).decode(_ENCODING)
        except (OSError, EOFError, zlib.error, UnicodeDecodeError) as e:
            raise CodecError(f"Failed to decompress payload: {e}") from e

    def compress_to_text(self, text: str) -> str:
        return base64.b64encode(self.compress(text)).decode("ascii")

    def decompress_from_text(self, encoded: str) -> str:
        """Inverse of compress_to_text().

        Raises:
            CodecError: If encoded is not valid base64 or does not decompress.
        """
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CodecError(f"Compressed payload is not valid base64: {e}") from e
        return self.decompress(data)
