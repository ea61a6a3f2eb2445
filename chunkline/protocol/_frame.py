# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
A frame is the wire representation of one payload before fragmentation::

    uint8       format      # See PayloadFormat.
    varuint     topic size  # Number of bytes in the UTF-8 topic; 7 bits per byte, least significant group first.
    uint8[]     topic       # UTF-8.
    uint8[]     content     # Until the end of the frame; the raw body or its raw deflate stream.

The topic encoding is the same as that of the .NET ``BinaryWriter.Write(string)``,
which keeps the frames interoperable with existing peers.
"""

from __future__ import annotations
import enum
import typing
import logging
from ._error import MalformedFrameError
from ._compression import compress, decompress, DEFAULT_COMPRESSION_LEVEL


_MAX_LENGTH_PREFIX_SIZE = 5
"""
A 32-bit length takes at most five 7-bit groups.
"""

_MAX_STRING_LENGTH = 2 ** 31 - 1


_logger = logging.getLogger(__name__)


class PayloadFormat(enum.IntEnum):
    RAW = 1
    """
    The content is the body as-is.
    """

    COMPRESSED_DEFLATE = 2
    """
    The content is the raw deflate stream of the body. Only used if it is strictly shorter than the body.
    """


def encode_string(value: str) -> bytes:
    """
    Length-prefixed UTF-8 string encoding.

    >>> encode_string('t')
    b'\\x01t'
    >>> encode_string('')
    b'\\x00'
    >>> encode_string('x' * 200)[:2]
    b'\\xc8\\x01'
    """
    encoded = value.encode("utf8")
    size = len(encoded)
    if size > _MAX_STRING_LENGTH:
        raise ValueError(f"The string is too long: {size} bytes")
    prefix = bytearray()
    while size >= 0x80:
        prefix.append((size & 0x7F) | 0x80)
        size >>= 7
    prefix.append(size)
    return bytes(prefix) + encoded


def decode_string(buffer: typing.Union[bytes, memoryview], offset: int = 0) -> typing.Tuple[str, int]:
    """
    The inverse of :func:`encode_string`.

    :returns: The decoded string and the offset of the first byte after it.

    :raises: :class:`MalformedFrameError` if the string is truncated, its length prefix is invalid,
        or it is not valid UTF-8.

    >>> decode_string(b'\\x05hello, world', 0)
    ('hello', 6)
    """
    size = 0
    shift = 0
    for index in range(_MAX_LENGTH_PREFIX_SIZE):
        if offset >= len(buffer):
            raise MalformedFrameError("The string length prefix is truncated")
        b = buffer[offset]
        offset += 1
        size |= (b & 0x7F) << shift
        shift += 7
        if b & 0x80 == 0:
            break
        if index == _MAX_LENGTH_PREFIX_SIZE - 1:
            raise MalformedFrameError("The string length prefix is too long")

    if size > _MAX_STRING_LENGTH:
        raise MalformedFrameError(f"Invalid string length: {size}")
    if offset + size > len(buffer):
        raise MalformedFrameError(f"The string of {size} bytes is truncated to {len(buffer) - offset} bytes")
    try:
        value = bytes(buffer[offset : offset + size]).decode("utf8")
    except UnicodeDecodeError as ex:
        raise MalformedFrameError(f"The string is not valid UTF-8: {ex}") from None
    return value, offset + size


def frame(
    topic: str,
    body: typing.Union[bytes, bytearray, memoryview],
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
) -> bytes:
    """
    Wraps the payload into a frame. The body is compressed if that makes it strictly shorter.

    >>> frame('x', b'abc')
    b'\\x01\\x01xabc'
    >>> frame('t', bytes(1000))[0] == PayloadFormat.COMPRESSED_DEFLATE
    True
    """
    body = bytes(body)
    compressed = compress(body, compression_level)
    if compressed is not None and len(compressed) < len(body):
        fmt, content = PayloadFormat.COMPRESSED_DEFLATE, compressed
    else:
        fmt, content = PayloadFormat.RAW, body
    _logger.debug(
        "Framing topic %r: %s, %d bytes of body, %d bytes of content", topic, fmt.name, len(body), len(content)
    )
    return bytes([fmt]) + encode_string(topic) + content


def unframe(image: typing.Union[bytes, bytearray, memoryview]) -> typing.Tuple[str, bytes]:
    """
    The inverse of :func:`frame`.

    :returns: (topic, body).

    :raises: :class:`MalformedFrameError` if the frame cannot be parsed;
        :class:`chunkline.protocol.DecompressionFailedError` if the content is marked compressed but cannot be inflated.

    >>> unframe(b'\\x01\\x01xabc')
    ('x', b'abc')
    """
    image = memoryview(image)
    if len(image) < 1:
        raise MalformedFrameError("The frame is empty")
    try:
        fmt = PayloadFormat(image[0])
    except ValueError:
        raise MalformedFrameError(f"Unknown payload format: {image[0]}") from None

    topic, offset = decode_string(image, 1)
    content = image[offset:]
    if fmt == PayloadFormat.RAW:
        body = bytes(content)
    else:
        assert fmt == PayloadFormat.COMPRESSED_DEFLATE
        body = decompress(content)
    return topic, body


def _unittest_frame_topic_encoding() -> None:
    from pytest import raises

    for topic in ["", "t", "received", "тема", "🚀" * 50, "a.b.c" * 100]:
        encoded = encode_string(topic)
        assert decode_string(encoded) == (topic, len(encoded))
        assert decode_string(b"\xAA" + encoded + b"tail", 1) == (topic, len(encoded) + 1)

    assert encode_string("é")[:1] == b"\x02"  # The prefix counts bytes, not characters.
    assert encode_string("x" * 0x4000)[:3] == b"\x80\x80\x01"

    with raises(MalformedFrameError):
        decode_string(b"")
    with raises(MalformedFrameError):
        decode_string(b"\x80")
    with raises(MalformedFrameError):
        decode_string(b"\x05abc")
    with raises(MalformedFrameError):
        decode_string(b"\xff\xff\xff\xff\xff\x01")
    with raises(MalformedFrameError):
        decode_string(b"\x02\xc3\x28")


def _unittest_frame_format_selection() -> None:
    import os

    body = bytes(1000)
    image = frame("t", body)
    assert image[0] == PayloadFormat.COMPRESSED_DEFLATE
    assert len(image) < len(body)
    assert unframe(image) == ("t", body)

    body = os.urandom(10)
    image = frame("x", body)
    assert image == b"\x01\x01x" + body
    assert unframe(image) == ("x", body)

    # Equal length is not an improvement.
    assert frame("e", b"")[0] == PayloadFormat.RAW
    assert unframe(frame("e", b"")) == ("e", b"")


def _unittest_frame_malformed() -> None:
    from pytest import raises
    from ._error import DecompressionFailedError

    with raises(MalformedFrameError):
        unframe(b"")
    with raises(MalformedFrameError):
        unframe(b"\x00\x01t")
    with raises(MalformedFrameError):
        unframe(b"\x03\x01t")
    with raises(MalformedFrameError):
        unframe(b"\x01\x09t")
    with raises(DecompressionFailedError):
        unframe(b"\x02\x01t\xff\xff\xff")
