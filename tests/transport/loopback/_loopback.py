# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import typing
import pytest
import chunkline.transport
from chunkline.transport import ProtocolParameters, TransportStatistics
from chunkline.transport.loopback import LoopbackTransport, LoopbackTransportStatistics

pytestmark = pytest.mark.asyncio


async def _unittest_loopback_transport() -> None:
    with pytest.raises(ValueError):
        ProtocolParameters(max_message_length=2, message_overhead=2)
    with pytest.raises(ValueError):
        ProtocolParameters(max_message_length=10, message_overhead=-1)

    tr = LoopbackTransport("COM9")
    assert tr.identity == "COM9"
    assert tr.protocol_parameters == ProtocolParameters(max_message_length=507, message_overhead=2)
    assert tr.protocol_parameters.max_payload_length == 505
    assert repr(tr) == "LoopbackTransport('COM9', max_payload_length=505)"

    tr.protocol_parameters = ProtocolParameters(max_message_length=12, message_overhead=2)
    assert tr.protocol_parameters.max_payload_length == 10

    first: typing.List[typing.Tuple[str, typing.Any]] = []
    second: typing.List[typing.Tuple[str, typing.Any]] = []

    def broken(_message: str, _sender: typing.Any) -> None:
        raise RuntimeError("Intended exception")

    tr.begin_reception(lambda message, sender: first.append((message, sender)))
    tr.begin_reception(broken)
    tr.begin_reception(lambda message, sender: second.append((message, sender)))

    await tr.invoke("AQAAAQA=")
    assert first == [("AQAAAQA=", "COM9")]
    assert second == first  # The failing handler does not affect the others.

    with pytest.raises(chunkline.transport.MessageTooLongError):
        await tr.invoke("01234567890")
    await tr.invoke("0123456789")

    tr.invoke_result = chunkline.transport.TransportError("Intended exception")
    assert isinstance(tr.invoke_result, chunkline.transport.TransportError)
    with pytest.raises(chunkline.transport.TransportError):
        await tr.invoke("abc")
    tr.invoke_result = None

    assert len(first) == 2
    stats = tr.sample_statistics()
    assert isinstance(stats, TransportStatistics)
    assert stats == LoopbackTransportStatistics(
        out_messages=2,
        out_characters=18,
        out_errors=2,
        in_messages=2,
        in_characters=18,
    )

    tr.close()
    tr.close()  # Idempotency
    with pytest.raises(chunkline.transport.ResourceClosedError):
        await tr.invoke("abc")
    assert len(first) == 2
