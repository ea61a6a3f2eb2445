# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
A packet is one bounded-size unit placed on the channel; a frame is split into one or more packets.
The header is little-endian::

    uint8       payload-ID      # 0..254; 255 is reserved.
    uint16      fragment index  # Zero-based.
    uint16      fragment count  # Same value in all packets of a payload.
    uint8[]     fragment data   # Until the end of the packet.

On the channel, the compiled packet is represented as a standard base64 string.
"""

from __future__ import annotations
import math
import typing
import base64
import struct
import binascii
import dataclasses
import chunkline.util
from ._error import MalformedPacketError


HEADER_STRUCT = struct.Struct(
    "<"
    "B"  # Payload-ID
    "H"  # Fragment index
    "H"  # Fragment count
)

HEADER_SIZE = HEADER_STRUCT.size

PAYLOAD_ID_MODULO = 255
"""
Valid payload-ID values are [0, 255); 255 is reserved.
"""

MAX_FRAGMENT_COUNT = 2 ** 16 - 1


@dataclasses.dataclass(frozen=True)
class Packet:
    payload_id: int
    """
    Identifies the payload the fragment belongs to. Reused cyclically.
    """

    fragment_index: int
    """
    Index of the fragment within its payload, starting from zero.
    """

    fragment_count: int
    """
    Total number of fragments in the payload; at least one.
    """

    data: bytes
    """
    The slice of the frame carried by this packet. May be empty only if the frame is empty.
    """

    def __post_init__(self) -> None:
        if not (0 <= self.payload_id < PAYLOAD_ID_MODULO):
            raise ValueError(f"Invalid payload-ID: {self.payload_id}")

        if not (1 <= self.fragment_count <= MAX_FRAGMENT_COUNT):
            raise ValueError(f"Invalid fragment count: {self.fragment_count}")

        if not (0 <= self.fragment_index < self.fragment_count):
            raise ValueError(f"Invalid fragment index: {self.fragment_index} of {self.fragment_count}")

        if not isinstance(self.data, bytes):
            raise TypeError(f"Bad data type: {type(self.data).__name__}")

    def compile(self) -> bytes:
        """
        >>> Packet(payload_id=7, fragment_index=1, fragment_count=2, data=b'ab').compile()
        b'\\x07\\x01\\x00\\x02\\x00ab'
        """
        return HEADER_STRUCT.pack(self.payload_id, self.fragment_index, self.fragment_count) + self.data

    def encode_text(self) -> str:
        """
        The text form sent over the channel.

        >>> Packet(payload_id=1, fragment_index=0, fragment_count=1, data=b'').encode_text()
        'AQAAAQA='
        """
        return base64.b64encode(self.compile()).decode("ascii")

    @staticmethod
    def parse(image: typing.Union[bytes, bytearray, memoryview]) -> Packet:
        """
        :raises: :class:`MalformedPacketError` if the image is too short or the header is invalid.
        """
        if len(image) < HEADER_SIZE:
            raise MalformedPacketError(f"The packet of {len(image)} bytes is shorter than the header")
        payload_id, fragment_index, fragment_count = HEADER_STRUCT.unpack_from(image)
        try:
            return Packet(
                payload_id=payload_id,
                fragment_index=fragment_index,
                fragment_count=fragment_count,
                data=bytes(image[HEADER_SIZE:]),
            )
        except ValueError as ex:
            index_only = payload_id < PAYLOAD_ID_MODULO and fragment_count > 0
            raise MalformedPacketError(
                f"Invalid packet header: {ex}", payload_id=payload_id if index_only else None
            ) from None

    @staticmethod
    def decode_text(text: str) -> Packet:
        """
        :raises: :class:`MalformedPacketError` if the text is not valid base64 or does not contain a valid packet.

        >>> Packet.decode_text('AQAAAQA=')
        Packet(payload_id=1, fragment_index=0, fragment_count=1, data=)
        """
        try:
            image = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as ex:
            raise MalformedPacketError(f"The message of {len(text)} characters is not valid base64: {ex}") from None
        return Packet.parse(image)

    def __repr__(self) -> str:
        """
        The data is shown in hex, truncated if it is too long for a sensible string representation.
        """
        data_length_limit = 50
        if len(self.data) > data_length_limit:
            data = self.data[:data_length_limit].hex() + "..."
        else:
            data = self.data.hex()
        return chunkline.util.repr_attributes(
            self,
            payload_id=self.payload_id,
            fragment_index=self.fragment_index,
            fragment_count=self.fragment_count,
            data=data,
        )


def compute_max_fragment_payload(max_message_length: int) -> int:
    """
    Determines how many bytes of the frame fit into one packet if the packet is sent as a base64 message
    of at most the specified number of characters.
    Base64 takes four characters per three bytes; the budget is rounded down to whole groups,
    then the packet header is subtracted.

    >>> compute_max_fragment_payload(505)
    373
    >>> compute_max_fragment_payload(12)
    4
    """
    raw_budget = (int(max_message_length) // 4) * 3
    out = raw_budget - HEADER_SIZE
    if out < 1:
        raise ValueError(f"A message of {max_message_length} characters cannot carry a packet")
    return out


def fragment(
    payload_id: int,
    data: typing.Union[bytes, bytearray, memoryview],
    max_fragment_payload: int,
) -> typing.List[Packet]:
    """
    Splits the data into an ordered list of packets carrying at most ``max_fragment_payload`` bytes each.
    Every packet except the last one is full. Empty data yields one empty packet.

    :raises: :class:`ValueError` if the payload-ID is invalid, the fragment size is not positive,
        or the data would require more than 65535 fragments.

    >>> [p.data for p in fragment(3, b'abcdefg', 3)]
    [b'abc', b'def', b'g']
    >>> fragment(3, b'', 3)
    [Packet(payload_id=3, fragment_index=0, fragment_count=1, data=)]
    """
    if max_fragment_payload < 1:
        raise ValueError(f"Invalid fragment size: {max_fragment_payload}")
    data = bytes(data)
    fragment_count = max(1, math.ceil(len(data) / max_fragment_payload))
    if fragment_count > MAX_FRAGMENT_COUNT:
        raise ValueError(
            f"{len(data)} bytes do not fit into {MAX_FRAGMENT_COUNT} fragments of {max_fragment_payload} bytes"
        )
    return [
        Packet(
            payload_id=payload_id,
            fragment_index=index,
            fragment_count=fragment_count,
            data=data[index * max_fragment_payload : (index + 1) * max_fragment_payload],
        )
        for index in range(fragment_count)
    ]


def _unittest_packet_ctor() -> None:
    from pytest import raises

    Packet(payload_id=254, fragment_index=65534, fragment_count=65535, data=b"")

    with raises(ValueError):
        Packet(payload_id=255, fragment_index=0, fragment_count=1, data=b"")

    with raises(ValueError):
        Packet(payload_id=-1, fragment_index=0, fragment_count=1, data=b"")

    with raises(ValueError):
        Packet(payload_id=0, fragment_index=0, fragment_count=0, data=b"")

    with raises(ValueError):
        Packet(payload_id=0, fragment_index=1, fragment_count=1, data=b"")

    with raises(TypeError):
        Packet(payload_id=0, fragment_index=0, fragment_count=1, data=bytearray())  # type: ignore


def _unittest_packet_compile_parse() -> None:
    from pytest import raises

    pkt = Packet(payload_id=0xAB, fragment_index=0x0102, fragment_count=0x0304, data=b"hello")
    image = pkt.compile()
    assert image == b"\xAB\x02\x01\x04\x03hello"
    assert Packet.parse(image) == pkt
    assert Packet.parse(memoryview(image)) == pkt
    assert Packet.decode_text(pkt.encode_text()) == pkt
    assert pkt.encode_text() == base64.b64encode(image).decode()

    with raises(MalformedPacketError):
        Packet.parse(b"\x01\x00\x00\x01")
    with raises(MalformedPacketError):
        Packet.parse(b"\xff\x00\x00\x01\x00")
    with raises(MalformedPacketError):
        Packet.parse(b"\x01\x00\x00\x00\x00")
    with raises(MalformedPacketError) as exc_info:
        Packet.parse(b"\x01\x05\x00\x02\x00")
    assert exc_info.value.payload_id == 1
    with raises(MalformedPacketError) as exc_info:
        Packet.parse(b"\x01\x00\x00\x00\x00")
    assert exc_info.value.payload_id is None
    with raises(MalformedPacketError):
        Packet.decode_text("not base64!")
    with raises(MalformedPacketError):
        Packet.decode_text("AQID")  # Valid base64, three bytes.

    assert "..." in repr(Packet(payload_id=0, fragment_index=0, fragment_count=1, data=bytes(100)))


def _unittest_fragment() -> None:
    from pytest import raises

    data = bytes(range(256)) * 3
    packets = fragment(200, data, 100)
    assert len(packets) == 8
    assert [p.fragment_index for p in packets] == list(range(8))
    assert all(p.fragment_count == 8 for p in packets)
    assert all(p.payload_id == 200 for p in packets)
    assert [len(p.data) for p in packets] == [100] * 7 + [68]
    assert b"".join(p.data for p in packets) == data

    # Exact multiple: no empty tail packet.
    packets = fragment(0, bytes(300), 100)
    assert [len(p.data) for p in packets] == [100, 100, 100]

    # The default budget of the channel.
    assert compute_max_fragment_payload(507 - 2) == 373
    for p in fragment(1, bytes(range(256)) * 10, 373):
        assert len(p.encode_text()) <= 505

    with raises(ValueError):
        fragment(0, b"abc", 0)
    with raises(ValueError):
        fragment(255, b"abc", 1)
    with raises(ValueError):
        fragment(0, bytes(MAX_FRAGMENT_COUNT + 1), 1)
    with raises(ValueError):
        compute_max_fragment_payload(7)
