# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import copy
import typing
import asyncio
import logging
import dataclasses
import chunkline.util
import chunkline.transport
from ._packet import Packet


_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class SendQueueStatistics:
    packets: int = 0
    """Packets handed over to the transport successfully."""

    errors: int = 0
    """Packets the transport failed to accept. They are not retried."""

    discarded: int = 0
    """Packets that were still queued when the queue was closed."""


class SendQueue:
    """
    A FIFO of packets drained by a single worker task at a fixed rate.

    :meth:`enqueue` never blocks and never fails due to transport issues;
    the packets of one call are appended as a contiguous block, so they are delivered in order and never
    interleaved with the packets of another call.
    The worker is started by the first :meth:`enqueue` and lives until :meth:`close`;
    later calls feed the same worker, so there is never more than one task draining the queue.

    For every packet, the worker encodes the packet into text, hands it over to the transport,
    and sleeps for the send interval before taking the next one.
    The sleep is the only point where the sending side yields control;
    it exists only to keep the invocation rate below the limit of the channel.
    If the transport fails to accept a packet, the failure is logged and counted, and the worker moves on.

    All methods shall be invoked from the event loop thread.
    """

    DEFAULT_SEND_INTERVAL = 0.030

    def __init__(
        self,
        transport: chunkline.transport.Transport,
        send_interval: float = DEFAULT_SEND_INTERVAL,
        on_packet_sent: typing.Optional[typing.Callable[[Packet], None]] = None,
    ):
        """
        :param transport: The channel to deliver the packets over.

        :param send_interval: Seconds to wait after each invocation of the transport.
            The default keeps the rate at about 33 invocations per second.

        :param on_packet_sent: Invoked after each packet is processed, whether it was accepted by the transport
            or not. Used for releasing the payload-ID once the last fragment is gone.
        """
        self._transport = transport
        self._send_interval = float(send_interval)
        if self._send_interval < 0:
            raise ValueError(f"Invalid send interval: {self._send_interval}")
        self._on_packet_sent = on_packet_sent
        self._queue: asyncio.Queue[Packet] = asyncio.Queue()
        self._worker: typing.Optional[asyncio.Task[None]] = None
        self._statistics = SendQueueStatistics()
        self._closed = False

    @property
    def transport(self) -> chunkline.transport.Transport:
        return self._transport

    @property
    def send_interval(self) -> float:
        return self._send_interval

    @property
    def pending(self) -> int:
        """
        The number of packets waiting in the queue, not including the one being sent, if any.
        """
        return self._queue.qsize()

    def enqueue(self, packets: typing.Iterable[Packet]) -> None:
        """
        Appends the packets to the queue in the supplied order and makes sure the worker is running.
        Must be invoked from within a running event loop.

        :raises: :class:`chunkline.transport.ResourceClosedError` if the queue is closed.
        """
        if self._closed:
            raise chunkline.transport.ResourceClosedError(f"{self} is closed")
        loop = asyncio.get_running_loop()  # Raises before the queue is touched if there is no loop.
        count = 0
        for pkt in packets:
            self._queue.put_nowait(pkt)
            count += 1
        _logger.debug("%s: %d packets enqueued, %d pending", self, count, self._queue.qsize())
        if self._worker is None:
            self._worker = loop.create_task(self._run())

    async def flush(self) -> None:
        """
        Returns when every enqueued packet has been handed over to the transport (or failed to).
        """
        await self._queue.join()

    def sample_statistics(self) -> SendQueueStatistics:
        return copy.copy(self._statistics)

    def close(self) -> None:
        """
        Stops the worker and discards the packets that have not been sent yet.
        The transport is not closed. Closing an already closed queue is not an error.
        """
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            self._worker.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            self._statistics.discarded += 1
        if self._statistics.discarded:
            _logger.info("%s: Closed with %d packets discarded", self, self._statistics.discarded)

    async def _run(self) -> None:
        _logger.debug("%s: Worker started", self)
        try:
            while not self._closed:
                pkt = await self._queue.get()
                try:
                    await self._transport.invoke(pkt.encode_text())
                except asyncio.CancelledError:
                    raise
                except Exception as ex:
                    self._statistics.errors += 1
                    _logger.exception("%s: Could not send %r: %s", self, pkt, ex)
                else:
                    self._statistics.packets += 1
                finally:
                    if self._on_packet_sent is not None:
                        try:
                            self._on_packet_sent(pkt)
                        except Exception as ex:  # pragma: no cover
                            _logger.exception("%s: Unhandled exception in the sent-packet hook: %s", self, ex)
                    self._queue.task_done()
                await asyncio.sleep(self._send_interval)
        except asyncio.CancelledError:
            _logger.debug("%s: Worker cancelled", self)
            raise

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes_noexcept(
            self, self._transport, send_interval=self._send_interval, pending=self._queue.qsize()
        )
