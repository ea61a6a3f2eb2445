# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import typing
import asyncio
import logging
import pytest
import serial
import chunkline.transport
from chunkline.transport import ProtocolParameters

# Shouldn't import a transport from inside a coroutine because it triggers debug warnings.
from chunkline.transport.serial import SerialTransport, SerialTransportStatistics

pytestmark = pytest.mark.asyncio


async def _wait_for(condition: typing.Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        assert asyncio.get_running_loop().time() < deadline, "Timed out"
        await asyncio.sleep(0.01)


async def _unittest_serial_transport(caplog: typing.Any) -> None:
    with pytest.raises(ValueError):
        _ = SerialTransport("loop://", command="N D")

    with pytest.raises(ValueError):
        _ = SerialTransport("loop://", command="")

    with pytest.raises(ValueError):
        _ = SerialTransport("loop://", max_message_length=2)

    with pytest.raises(chunkline.transport.InvalidMediaConfigurationError):
        _ = SerialTransport(serial.serial_for_url("loop://", do_not_open=True))

    tr = SerialTransport("loop://", command="data", max_message_length=32, baudrate=115200)
    assert tr.serial_port.is_open
    assert tr.serial_port.baudrate == 115200
    assert tr.command == "data"
    assert tr.protocol_parameters == ProtocolParameters(max_message_length=32, message_overhead=4)
    assert tr.sample_statistics() == SerialTransportStatistics()

    received: typing.List[typing.Tuple[str, typing.Any]] = []
    tr.begin_reception(lambda message, sender: received.append((message, sender)))

    # The loop:// port returns every written line back to the same instance.
    await tr.invoke("AQAAAQA=")
    await tr.invoke("x" * 28)
    await _wait_for(lambda: len(received) == 2)
    assert received == [("AQAAAQA=", "loop://"), ("x" * 28, "loop://")]

    with pytest.raises(chunkline.transport.MessageTooLongError):
        await tr.invoke("x" * 29)
    with pytest.raises(ValueError):
        await tr.invoke("one\ntwo")

    # Lines that do not carry the command are reported but not delivered.
    with caplog.at_level(logging.WARNING):
        tr.serial_port.write(b"Console output\r\ndatum\n")
        await _wait_for(lambda: tr.sample_statistics().in_out_of_band_lines == 2)
    assert "Console output" in caplog.text
    assert len(received) == 2

    stats = tr.sample_statistics()
    assert stats.out_messages == 2
    assert stats.out_characters == 36
    assert stats.out_errors == 2
    assert stats.in_messages == 2
    assert stats.in_characters == 36
    assert stats.out_bytes == len(b"data AQAAAQA=\n") + len(b"data " + b"x" * 28 + b"\n")
    assert stats.in_bytes == stats.out_bytes + len(b"Console output\r\ndatum\n")

    assert "loop://" in repr(tr)

    tr.close()
    tr.close()  # Idempotency
    assert not tr.serial_port.is_open
    with pytest.raises(chunkline.transport.ResourceClosedError):
        await tr.invoke("abc")
    await asyncio.sleep(0.1)
