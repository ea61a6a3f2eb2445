# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import typing
import logging
import chunkline.util
import chunkline.transport
from chunkline.protocol import Packet, SendQueue, SendQueueStatistics, PayloadIDAllocator
from chunkline.protocol import frame, fragment, compute_max_fragment_payload, DEFAULT_COMPRESSION_LEVEL


_logger = logging.getLogger(__name__)


class Sender:
    """
    The sending side of the protocol bound to one transport.

    :meth:`send` is fire-and-forget: the payload is framed, fragmented, and queued immediately;
    the packets are delivered in the background at the rate set by the send interval.
    Only local errors are reported synchronously (e.g., a payload too large to be fragmented, or all payload-IDs
    being in flight); a failure of the channel is never reported to the caller.
    """

    def __init__(
        self,
        transport: chunkline.transport.Transport,
        *,
        send_interval: float = SendQueue.DEFAULT_SEND_INTERVAL,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
        track_payload_ids: bool = True,
    ):
        """
        :param transport: The channel to send the packets over. It is not closed when the sender is closed.

        :param send_interval: Seconds between invocations of the channel.

        :param compression_level: The zlib level used to compress the payloads, from 0 to 9.

        :param track_payload_ids: If True, the payload-IDs of payloads still in the queue are not reused;
            see :class:`chunkline.protocol.PayloadIDAllocator`.
        """
        self._compression_level = int(compression_level)
        self._allocator = PayloadIDAllocator(track_active=track_payload_ids)
        self._queue = SendQueue(transport, send_interval, on_packet_sent=self._on_packet_sent)

    @property
    def max_fragment_payload(self) -> int:
        """
        The fragment budget derived from the current protocol parameters of the transport.
        """
        return compute_max_fragment_payload(self._queue.transport.protocol_parameters.max_payload_length)

    @property
    def queue(self) -> SendQueue:
        return self._queue

    def send(self, topic: str, payload: typing.Union[bytes, bytearray, memoryview]) -> int:
        """
        Queues the payload for delivery under the specified topic.
        Must be invoked from within a running event loop.

        :returns: The payload-ID assigned to the payload.

        :raises: :class:`chunkline.protocol.PayloadIDExhaustionError` if all payload-IDs are in flight;
            :class:`ValueError` if the payload is too large to be fragmented.
        """
        image = frame(topic, payload, self._compression_level)
        payload_id = self._allocator.allocate()
        try:
            packets = fragment(payload_id, image, self.max_fragment_payload)
            self._queue.enqueue(packets)
        except Exception:
            self._allocator.release(payload_id)
            raise
        _logger.info(
            "%s: Payload-ID %d topic %r: %d bytes framed into %d bytes, %d packets",
            self,
            payload_id,
            topic,
            len(payload),
            len(image),
            len(packets),
        )
        return payload_id

    async def flush(self) -> None:
        """
        Returns when every queued packet has been handed over to the transport.
        """
        await self._queue.flush()

    def sample_statistics(self) -> SendQueueStatistics:
        return self._queue.sample_statistics()

    def close(self) -> None:
        self._queue.close()

    def _on_packet_sent(self, packet: Packet) -> None:
        if packet.fragment_index == packet.fragment_count - 1:
            self._allocator.release(packet.payload_id)

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes_noexcept(
            self, self._queue.transport, max_fragment_payload=self.max_fragment_payload
        )


def _unittest_sender_outside_event_loop() -> None:
    import asyncio
    from pytest import raises
    from chunkline.transport.loopback import LoopbackTransport

    tr = LoopbackTransport()
    received: typing.List[Packet] = []
    tr.begin_reception(lambda message, _: received.append(Packet.decode_text(message)))

    loop = asyncio.new_event_loop()
    try:

        async def make() -> Sender:
            return Sender(tr, send_interval=0.0)

        sender = loop.run_until_complete(make())

        # A failed send leaves nothing behind, so nothing is delivered under the released ID later.
        with raises(RuntimeError):
            sender.send("t", b"first")
        assert sender.queue.pending == 0

        async def send_again() -> int:
            payload_id = sender.send("t", b"second")
            await sender.flush()
            return payload_id

        assert loop.run_until_complete(send_again()) == 2
        assert [p.payload_id for p in received] == [2]
        sender.close()
        loop.run_until_complete(asyncio.sleep(0))
    finally:
        loop.close()
