# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import os
import typing
import asyncio
import logging
import pytest
import chunkline.transport
from chunkline.protocol import Packet, PayloadIDExhaustionError, MalformedPacketError, MalformedFrameError
from chunkline.protocol import DecompressionFailedError, ReassemblyStore, fragment, frame
from chunkline.transport.loopback import LoopbackTransport
from chunkline.application import Config, Endpoint, Dispatcher, Receiver, ReceivedPayload, make_endpoint

pytestmark = pytest.mark.asyncio


async def _unittest_endpoint_loopback() -> None:
    tr = LoopbackTransport("peer")
    ep = make_endpoint(tr, Config(send_interval=0.001))
    assert isinstance(ep, Endpoint)
    assert ep.transport is tr
    assert ep.sender.max_fragment_payload == 373
    assert ep.dispatcher.event_name("map") == "received.map"

    maps: typing.List[typing.Tuple[typing.Any, bytes]] = []
    saves: typing.List[typing.Tuple[typing.Any, bytes]] = []
    unsubscribe = ep.subscribe("map", lambda sender, payload: maps.append((sender, payload)))
    ep.subscribe("save", lambda sender, payload: saves.append((sender, payload)))

    map_data = os.urandom(5000)
    save_data = b"slot 1;" * 1000
    assert ep.send("map", map_data) == 1
    assert ep.send("save", save_data) == 2
    assert ep.send("nobody", b"") == 3
    await ep.flush()

    assert maps == [("peer", map_data)]
    assert saves == [("peer", save_data)]

    stats = ep.sender.sample_statistics()
    assert stats.packets == 14 + 1 + 1  # The compressible payload takes one packet.
    assert stats.errors == 0
    assert ep.receiver.store.pending == {}
    assert ep.receiver.store.sample_statistics().frames == 3

    unsubscribe()
    ep.send("map", b"again")
    await ep.flush()
    assert len(maps) == 1

    ep.close()
    with pytest.raises(chunkline.transport.ResourceClosedError):
        ep.send("map", b"late")
    with pytest.raises(chunkline.transport.ResourceClosedError):
        await tr.invoke("AQAAAQA=")


async def _unittest_endpoint_payload_id_release() -> None:
    ep = make_endpoint(LoopbackTransport(), Config(send_interval=0.0))

    ids = [ep.send("t", b"x") for _ in range(255)]
    assert sorted(ids) == list(range(255))
    with pytest.raises(PayloadIDExhaustionError):
        ep.send("t", b"x")

    await ep.flush()
    assert ep.send("t", b"x") == 1  # All IDs are released once the last fragments are sent.
    await ep.flush()
    ep.close()

    ep = make_endpoint(LoopbackTransport(), Config(send_interval=0.0, track_payload_ids=False))
    ids = [ep.send("t", b"x") for _ in range(300)]
    assert ids[254] == 0
    assert ids[255] == 1
    ep.close()


async def _unittest_endpoint_oversized_payload() -> None:
    tr = LoopbackTransport(
        protocol_parameters=chunkline.transport.ProtocolParameters(max_message_length=10, message_overhead=2)
    )
    ep = make_endpoint(tr, Config(send_interval=0.0))
    assert ep.sender.max_fragment_payload == 1
    with pytest.raises(ValueError):
        ep.send("t", os.urandom(70_000))
    assert ep.send("t", b"ok") == 2
    assert ep.sender.sample_statistics().packets == 0
    await ep.flush()
    assert ep.sender.sample_statistics().packets == 5

    # The fragment budget follows the protocol parameters of the transport.
    tr.protocol_parameters = chunkline.transport.ProtocolParameters(max_message_length=100, message_overhead=2)
    assert ep.sender.max_fragment_payload == 67
    received: typing.List[Packet] = []
    tr.begin_reception(lambda message, _: received.append(Packet.decode_text(message)))
    assert ep.send("t", os.urandom(200)) == 3
    await ep.flush()
    assert [len(p.data) for p in received] == [67, 67, 67, 2]
    assert ep.sender.sample_statistics().errors == 0
    ep.close()


async def _unittest_endpoint_from_config() -> None:
    with pytest.raises(chunkline.transport.InvalidMediaConfigurationError):
        make_endpoint(config=Config())

    ep = make_endpoint(
        config=Config.from_environment(
            {
                "CHUNKLINE__LOOPBACK": "true",
                "CHUNKLINE__TRANSPORT__MAX_MESSAGE_LENGTH": "100",
                "CHUNKLINE__RECEIVE__NAMESPACE": "ndata.received",
                "CHUNKLINE__SEND__INTERVAL": "0",
            }
        )
    )
    assert isinstance(ep.transport, LoopbackTransport)
    assert ep.transport.protocol_parameters.max_payload_length == 98
    assert ep.sender.max_fragment_payload == 67
    assert ep.dispatcher.namespace == "ndata.received"
    assert "ndata.received" in repr(ep)

    received: typing.List[bytes] = []
    ep.subscribe("t", lambda _, payload: received.append(payload))
    data = os.urandom(1000)
    ep.send("t", data)
    await ep.flush()
    assert received == [data]
    ep.close()


async def _unittest_receiver_errors(caplog: typing.Any) -> None:
    dispatcher = Dispatcher()
    receiver = Receiver(dispatcher)
    assert isinstance(receiver.store, ReassemblyStore)
    got: typing.List[bytes] = []
    dispatcher.subscribe("t", lambda _, payload: got.append(payload))

    with pytest.raises(MalformedPacketError):
        receiver.receive("definitely not base64")

    with pytest.raises(MalformedFrameError, match="Payload-ID 5"):
        receiver.receive(Packet(5, 0, 1, b"\x07\x01t").encode_text(), "COM9")
    with pytest.raises(DecompressionFailedError, match="COM9"):
        receiver.receive(Packet(6, 0, 1, b"\x02\x01t\xff\xff").encode_text(), "COM9")
    assert receiver.unusable_frames == 2
    assert receiver.store.pending == {}

    packets = fragment(7, frame("t", b"hello" * 100), 10)
    results = [receiver.receive(p.encode_text(), "COM9") for p in packets]
    assert results[:-1] == [None] * (len(packets) - 1)
    assert results[-1] == ReceivedPayload(topic="t", payload=b"hello" * 100, sender="COM9", payload_id=7)
    assert "500 bytes" in repr(results[-1])
    assert got == [b"hello" * 100]

    # Errors raised while processing messages from a transport are logged by the transport.
    tr = LoopbackTransport()
    receiver.attach(tr)
    with caplog.at_level(logging.ERROR):
        await tr.invoke("definitely not base64")
    assert "MalformedPacketError" in caplog.text
    await tr.invoke(Packet(8, 0, 1, frame("t", b"via transport")).encode_text())
    assert got[-1] == b"via transport"

    # Subscribers that fail do not prevent delivery to the others.
    def broken(_sender: typing.Any, _payload: bytes) -> None:
        raise RuntimeError("Intended exception")

    dispatcher.subscribe("t", broken)
    dispatcher.subscribe("t", lambda _, payload: got.append(payload))
    assert dispatcher.dispatch("t", b"z", None) == 3
    assert got[-2:] == [b"z", b"z"]
    await asyncio.sleep(0)
