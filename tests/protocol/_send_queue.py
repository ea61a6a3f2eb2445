# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import typing
import asyncio
import pytest
import chunkline.transport
from chunkline.protocol import SendQueue, SendQueueStatistics, Packet, fragment
from chunkline.transport import ProtocolParameters
from chunkline.transport.loopback import LoopbackTransport

pytestmark = pytest.mark.asyncio


async def _unittest_send_queue_order_and_rate() -> None:
    loop = asyncio.get_running_loop()
    tr = LoopbackTransport("local")
    received: typing.List[typing.Tuple[float, str, typing.Any]] = []
    tr.begin_reception(lambda message, sender: received.append((loop.time(), message, sender)))

    with pytest.raises(ValueError):
        SendQueue(tr, -1.0)

    interval = 0.02
    queue = SendQueue(tr, interval)
    assert queue.transport is tr
    assert queue.send_interval == pytest.approx(interval)
    assert queue.pending == 0

    first = fragment(1, b"a" * 30, 10)
    second = fragment(2, b"b" * 20, 10)
    num_tasks = len(asyncio.all_tasks())
    queue.enqueue(first)
    queue.enqueue(second)
    assert len(asyncio.all_tasks()) == num_tasks + 1  # One worker regardless of the number of calls.
    assert queue.pending == 5

    await queue.flush()
    assert queue.pending == 0
    assert [Packet.decode_text(m) for _, m, _ in received] == first + second
    assert all(s == "local" for _, _, s in received)
    timestamps = [ts for ts, _, _ in received]
    for a, b in zip(timestamps, timestamps[1:]):
        assert b - a >= interval * 0.9
    assert queue.sample_statistics() == SendQueueStatistics(packets=5)

    # The worker is reused after the queue is drained.
    received.clear()
    queue.enqueue(fragment(3, b"c", 10))
    assert len(asyncio.all_tasks()) == num_tasks + 1
    await queue.flush()
    assert [Packet.decode_text(m).payload_id for _, m, _ in received] == [3]

    queue.close()
    await asyncio.sleep(0.01)
    assert len(asyncio.all_tasks()) == num_tasks


async def _unittest_send_queue_errors() -> None:
    tr = LoopbackTransport(protocol_parameters=ProtocolParameters(max_message_length=20, message_overhead=2))
    received: typing.List[str] = []
    tr.begin_reception(lambda message, _: received.append(message))

    sent: typing.List[Packet] = []
    queue = SendQueue(tr, 0.0, on_packet_sent=sent.append)

    # The transport failure is counted and the worker carries on with the next packet.
    tr.invoke_result = chunkline.transport.TransportError("Link is down")
    queue.enqueue(fragment(1, b"abc", 5))
    await queue.flush()
    tr.invoke_result = None
    queue.enqueue(fragment(2, b"abcdefgh", 5))
    await queue.flush()
    assert [Packet.decode_text(m).payload_id for m in received] == [2, 2]

    # The packet does not fit into a message: 5 + 10 bytes take 20 characters, 18 are available.
    queue.enqueue([Packet(3, 0, 1, bytes(10))])
    await queue.flush()

    assert queue.sample_statistics() == SendQueueStatistics(packets=2, errors=2)
    assert [p.payload_id for p in sent] == [1, 2, 2, 3]
    assert tr.sample_statistics().out_errors == 2
    queue.close()


async def _unittest_send_queue_close() -> None:
    tr = LoopbackTransport()
    received: typing.List[str] = []
    tr.begin_reception(lambda message, _: received.append(message))

    queue = SendQueue(tr, 10.0)
    queue.enqueue(fragment(1, bytes(50), 10))
    await asyncio.sleep(0.1)
    assert len(received) == 1  # The worker sleeps after the first packet.
    assert queue.pending == 4

    queue.close()
    queue.close()  # Idempotency
    assert queue.pending == 0
    assert queue.sample_statistics() == SendQueueStatistics(packets=1, discarded=4)
    await asyncio.wait_for(queue.flush(), 1.0)

    with pytest.raises(chunkline.transport.ResourceClosedError):
        queue.enqueue(fragment(2, b"", 10))

    await asyncio.sleep(0.1)
    assert len(received) == 1


async def _unittest_send_queue_closed_transport() -> None:
    tr = LoopbackTransport()
    queue = SendQueue(tr, 0.0)
    tr.close()
    queue.enqueue(fragment(1, bytes(30), 10))
    await queue.flush()
    assert queue.sample_statistics() == SendQueueStatistics(errors=3)
    queue.close()
