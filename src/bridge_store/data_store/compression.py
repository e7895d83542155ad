"""Payload compression for the compressed object variants.

Payloads are zstd frames written with the content size in the frame header,
so any frame produced here at any level decompresses without extra hints.
Input that is not a complete zstd frame fails instead of returning garbage.
"""

from __future__ import annotations

import zstandard

from bridge_store.data_store.errors import CompressionError, CorruptObjectError

DEFAULT_COMPRESSION_LEVEL = 3


def compress(data: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """Compress a payload.

    Args:
        data: Raw bytes (may be empty).
        level: zstd compression level.

    Returns:
        A zstd frame.

    Raises:
        CompressionError: If the level is invalid or the codec fails.
    """
    try:
        compressor = zstandard.ZstdCompressor(level=level, write_content_size=True)
        return compressor.compress(data)
    except (zstandard.ZstdError, ValueError) as e:
        raise CompressionError(f"Failed to compress payload: {e}", code="zstd", cause=e) from e


def decompress(data: bytes) -> bytes:
    """Decompress a payload produced by compress().

    Raises:
        CorruptObjectError: If data is not a valid zstd frame.
    """
    if not data:
        raise CorruptObjectError("Failed to decompress payload: empty input", code="zstd")
    try:
        return zstandard.ZstdDecompressor().decompress(data)
    except zstandard.ZstdError as e:
        raise CorruptObjectError(
            f"Failed to decompress payload: {e}", code="zstd", cause=e
        ) from e
