# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import zlib
import typing
import logging
from ._error import DecompressionFailedError


DEFAULT_COMPRESSION_LEVEL = 6
"""
The default zlib level; the same trade-off as the "optimal" level of most deflate implementations.
"""

_RAW_DEFLATE_WBITS = -zlib.MAX_WBITS
"""
Negative window bits select raw deflate: no zlib header and no Adler-32 trailer.
"""


_logger = logging.getLogger(__name__)


def compress(
    data: typing.Union[bytes, bytearray, memoryview], level: int = DEFAULT_COMPRESSION_LEVEL
) -> typing.Optional[bytes]:
    """
    Compresses the data into a raw deflate stream.

    :returns: The compressed data, or None if compression failed.
        Failure is not an error; the caller is expected to fall back to the uncompressed form.

    >>> len(compress(bytes(1000))) < 1000
    True
    >>> compress(b'', level=42) is None  # Invalid level.
    True
    """
    try:
        compressor = zlib.compressobj(level, zlib.DEFLATED, _RAW_DEFLATE_WBITS)
        return compressor.compress(data) + compressor.flush()
    except (zlib.error, ValueError, MemoryError) as ex:
        _logger.warning("Compression of %d bytes failed: %r", len(data), ex)
        return None


def decompress(source: typing.Union[bytes, bytearray, memoryview, typing.BinaryIO]) -> bytes:
    """
    Inflates a raw deflate stream. The source is either a bytes-like object or a readable binary stream,
    in which case it is read until the end.

    :raises: :class:`DecompressionFailedError` if the stream is corrupted, truncated, or followed by extra data.

    >>> decompress(compress(b'abc' * 100)) == b'abc' * 100
    True
    >>> import io
    >>> decompress(io.BytesIO(compress(b'hello')))
    b'hello'
    """
    data = source.read() if hasattr(source, "read") else bytes(source)  # type: ignore
    decompressor = zlib.decompressobj(_RAW_DEFLATE_WBITS)
    try:
        out = decompressor.decompress(data) + decompressor.flush()
    except zlib.error as ex:
        raise DecompressionFailedError(f"Could not inflate {len(data)} bytes: {ex}") from None
    if not decompressor.eof:
        raise DecompressionFailedError(f"The deflate stream of {len(data)} bytes is truncated")
    if decompressor.unused_data:
        raise DecompressionFailedError(
            f"The deflate stream is followed by {len(decompressor.unused_data)} bytes of unexpected data"
        )
    return out


def _unittest_compression() -> None:
    import os
    from pytest import raises

    for data in [b"", b"a", bytes(100_000), os.urandom(3000)]:
        compressed = compress(data)
        assert compressed is not None
        assert decompress(compressed) == data

    # No zlib header: the stream is a bare deflate stream.
    assert compress(b"") == b"\x03\x00"

    # Random data does not shrink.
    noise = os.urandom(10)
    compressed = compress(noise)
    assert compressed is not None
    assert len(compressed) >= len(noise)

    valid = compress(b"The quick brown fox jumps over the lazy dog" * 10)
    assert valid is not None

    with raises(DecompressionFailedError):
        decompress(valid[:-3])

    with raises(DecompressionFailedError):
        decompress(valid + b"\x00")

    with raises(DecompressionFailedError):
        decompress(b"\xff\xff\xff\xff")

    with raises(DecompressionFailedError):
        decompress(b"")
