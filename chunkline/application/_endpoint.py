# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import typing
import logging
import chunkline.util
import chunkline.transport
from chunkline.protocol import ReassemblyStore
from ._config import Config
from ._dispatcher import Dispatcher, PayloadHandler
from ._sender import Sender
from ._receiver import Receiver
from ._transport_factory import make_transport


_logger = logging.getLogger(__name__)


class Endpoint:
    """
    Both sides of the protocol bound to one transport: payloads are sent with :meth:`send`
    and received payloads are delivered to the handlers registered with :meth:`subscribe`.
    Use :func:`make_endpoint` to construct instances.

    The endpoint owns the transport: closing the endpoint closes the transport as well.
    """

    def __init__(self, transport: chunkline.transport.Transport, sender: Sender, receiver: Receiver) -> None:
        self._transport = transport
        self._sender = sender
        self._receiver = receiver
        self._receiver.attach(transport)

    @property
    def transport(self) -> chunkline.transport.Transport:
        return self._transport

    @property
    def sender(self) -> Sender:
        return self._sender

    @property
    def receiver(self) -> Receiver:
        return self._receiver

    @property
    def dispatcher(self) -> Dispatcher:
        return self._receiver.dispatcher

    def send(self, topic: str, payload: typing.Union[bytes, bytearray, memoryview]) -> int:
        """
        See :meth:`Sender.send`.
        """
        return self._sender.send(topic, payload)

    def subscribe(self, topic: str, handler: PayloadHandler) -> typing.Callable[[], None]:
        """
        See :meth:`Dispatcher.subscribe`.
        """
        return self._receiver.dispatcher.subscribe(topic, handler)

    async def flush(self) -> None:
        await self._sender.flush()

    def close(self) -> None:
        """
        Discards the unsent packets and closes the transport.
        """
        self._sender.close()
        self._transport.close()

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes_noexcept(self, self._transport, self._receiver.dispatcher)


def make_endpoint(
    transport: typing.Optional[chunkline.transport.Transport] = None,
    config: typing.Optional[Config] = None,
) -> Endpoint:
    """
    Constructs an endpoint from the configuration.
    If no configuration is given, it is read from the environment variables; see :meth:`Config.from_environment`.
    If no transport is given, it is constructed with :func:`make_transport`.
    Must be invoked from within a running event loop.

    :raises: :class:`chunkline.transport.InvalidMediaConfigurationError` if no transport is given
        and none is configured.
    """
    config = Config.from_environment() if config is None else config
    if transport is None:
        transport = make_transport(config)
        if transport is None:
            raise chunkline.transport.InvalidMediaConfigurationError(
                "No transport configured: set chunkline.serial.port or chunkline.loopback"
            )

    sender = Sender(
        transport,
        send_interval=config.send_interval,
        compression_level=config.compression_level,
        track_payload_ids=config.track_payload_ids,
    )
    receiver = Receiver(
        Dispatcher(config.namespace),
        ReassemblyStore(max_age=config.max_age, max_buffers=config.max_buffers),
    )
    out = Endpoint(transport, sender, receiver)
    _logger.info("Constructed %r", out)
    return out
