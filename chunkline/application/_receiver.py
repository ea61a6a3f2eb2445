# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import typing
import logging
import dataclasses
import chunkline.util
import chunkline.transport
from chunkline.protocol import ReassemblyStore, unframe, MalformedFrameError, DecompressionFailedError
from ._dispatcher import Dispatcher


_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ReceivedPayload:
    topic: str
    payload: bytes
    sender: typing.Any
    payload_id: int

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes(
            self,
            topic=repr(self.topic),
            payload=f"<{len(self.payload)} bytes>",
            sender=repr(self.sender),
            payload_id=self.payload_id,
        )


class Receiver:
    """
    The receiving side of the protocol: every message received from the channel is fed into the reassembly store;
    once a payload is complete, its frame is unwrapped and the payload is dispatched by topic.

    Processing is synchronous and happens entirely inside :meth:`receive`.
    """

    def __init__(self, dispatcher: Dispatcher, store: typing.Optional[ReassemblyStore] = None) -> None:
        self._dispatcher = dispatcher
        self._store = store if store is not None else ReassemblyStore()
        self._unusable_frames = 0

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def store(self) -> ReassemblyStore:
        return self._store

    @property
    def unusable_frames(self) -> int:
        """
        The number of reassembled frames that could not be unwrapped and were discarded.
        """
        return self._unusable_frames

    def attach(self, transport: chunkline.transport.Transport) -> None:
        """
        Makes the transport feed every received message into :meth:`receive`.
        Errors are then reported into the log by the transport.
        """
        transport.begin_reception(self.receive)

    def receive(self, message: str, sender: typing.Any = None) -> typing.Optional[ReceivedPayload]:
        """
        :returns: The payload if this message completed one (it has been dispatched already), None otherwise.

        :raises: :class:`chunkline.protocol.MalformedPacketError` if the message is not a valid packet;
            :class:`chunkline.protocol.MalformedFrameError` or :class:`chunkline.protocol.DecompressionFailedError`
            if the reassembled frame is unusable. The payload is discarded in the latter case.
        """
        packet = self._store.decode(message)
        image = self._store.process_packet(packet)
        if image is None:
            return None
        try:
            topic, payload = unframe(image)
        except (MalformedFrameError, DecompressionFailedError) as ex:
            self._unusable_frames += 1
            raise type(ex)(
                f"Payload-ID {packet.payload_id} from {sender!r} discarded: "
                f"frame of {len(image)} bytes in {packet.fragment_count} fragments: {ex}"
            ) from ex

        out = ReceivedPayload(topic=topic, payload=payload, sender=sender, payload_id=packet.payload_id)
        _logger.debug("%s: Received %r", self, out)
        self._dispatcher.dispatch(topic, payload, sender)
        return out

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes_noexcept(self, self._store, self._dispatcher)
