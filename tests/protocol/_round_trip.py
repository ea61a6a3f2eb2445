# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import os
import math
import random
import typing
import pytest
from chunkline.protocol import frame, unframe, fragment, compress, compute_max_fragment_payload
from chunkline.protocol import Packet, PayloadFormat, ReassemblyStore, MalformedPacketError


def _reassemble(packets: typing.Sequence[Packet]) -> bytes:
    rs = ReassemblyStore()
    out: typing.List[bytes] = []
    for pkt in packets:
        result = rs.receive(pkt.encode_text())
        if result is not None:
            out.append(result)
    assert rs.pending == {}
    assert len(out) == 1
    return out[0]


def _unittest_frame_round_trip() -> None:
    topics = ["", "t", "map", "save.slot.1", "данные", "x" * 300]
    bodies = [b"", b"\x00", os.urandom(1), os.urandom(1000), bytes(1000), b"abc" * 5000]
    for topic in topics:
        for body in bodies:
            image = frame(topic, body)
            assert unframe(image) == (topic, body)

            compressed = compress(body)
            assert compressed is not None
            expected = PayloadFormat.COMPRESSED_DEFLATE if len(compressed) < len(body) else PayloadFormat.RAW
            assert image[0] == expected


def _unittest_frame_compression_failure() -> None:
    # An invalid level makes the compressor fail; the body is sent uncompressed instead.
    body = bytes(1000)
    image = frame("t", body, compression_level=42)
    assert image[0] == PayloadFormat.RAW
    assert len(image) == 1 + 2 + len(body)
    assert unframe(image) == ("t", body)

    packets = fragment(9, image, compute_max_fragment_payload(505))
    assert _reassemble(packets) == image


def _unittest_fragment_round_trip() -> None:
    rng = random.Random(42)
    for size in [0, 1, 4, 5, 372, 373, 374, 746, 747, 10_000]:
        data = os.urandom(size)
        for max_fragment_payload in [1, 7, 373]:
            if size / max_fragment_payload > 2000:
                continue
            packets = fragment(rng.randrange(255), data, max_fragment_payload)
            assert len(packets) == max(1, math.ceil(size / max_fragment_payload))
            assert all(len(p.data) == max_fragment_payload for p in packets[:-1])
            assert b"".join(p.data for p in packets) == data
            shuffled = list(packets)
            rng.shuffle(shuffled)
            assert _reassemble(shuffled) == data


def _unittest_message_length_budget() -> None:
    budget = compute_max_fragment_payload(505)
    assert budget == 373
    for pkt in fragment(254, os.urandom(budget * 3), budget):
        text = pkt.encode_text()
        assert len(text) == 504
        assert Packet.decode_text(text) == pkt

    for length in range(8, 600):
        budget = compute_max_fragment_payload(length)
        pkt = Packet(0, 0, 1, bytes(budget))
        assert len(pkt.encode_text()) <= length


def _unittest_compressible_payload() -> None:
    body = bytes(1000)
    image = frame("t", body)
    assert image[0] == PayloadFormat.COMPRESSED_DEFLATE
    packets = fragment(1, image, 64)
    assert len(packets) == math.ceil(len(image) / 64)
    assert unframe(_reassemble(packets)) == ("t", body)

    # Same with a frame that does not fit into one packet.
    body = b"".join(i.to_bytes(4, "little") for i in range(5000))
    image = frame("t", body)
    packets = fragment(1, image, 64)
    assert len(packets) == math.ceil(len(image) / 64) > 1
    assert unframe(_reassemble(list(reversed(packets)))) == ("t", body)


def _unittest_incompressible_payload() -> None:
    body = os.urandom(10)
    image = frame("x", body)
    assert image[0] == PayloadFormat.RAW
    assert len(image) == 1 + 1 + 1 + 10
    packets = fragment(2, image, 64)
    assert len(packets) == 1
    assert unframe(_reassemble(packets)) == ("x", body)


def _unittest_short_packet_does_not_disturb_buffers() -> None:
    import base64

    rs = ReassemblyStore()
    packets = fragment(3, os.urandom(100), 40)
    assert rs.receive(packets[0].encode_text()) is None
    assert rs.receive(packets[2].encode_text()) is None
    before = rs.pending

    for image in [b"", b"\x03", b"\x03\x01\x00\x03"]:
        with pytest.raises(MalformedPacketError):
            rs.receive(base64.b64encode(image).decode())
        assert rs.pending == before

    assert rs.receive(packets[1].encode_text()) == b"".join(p.data for p in packets)
