# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import abc
import typing
import dataclasses
import chunkline.util


ReceptionHandler = typing.Callable[[str, typing.Any], None]
"""
Invoked once per received message with the message text and the identity of the sender.
The identity is opaque to the library; it is whatever the transport can tell about the origin of the message
(e.g., the serial port name). Handlers are invoked from the event loop thread.
"""


@dataclasses.dataclass(frozen=True)
class ProtocolParameters:
    """
    Basic channel capabilities. Normally, the values never change for a particular transport instance.
    """

    max_message_length: int
    """
    The maximum number of characters a single invocation of the channel may carry,
    including the per-invocation overhead (e.g., the name of the remote command).
    """

    message_overhead: int
    """
    How many characters of :attr:`max_message_length` are consumed by the channel itself on every invocation.
    """

    def __post_init__(self) -> None:
        if self.message_overhead < 0 or self.max_message_length <= self.message_overhead:
            raise ValueError(f"Invalid protocol parameters: {self}")

    @property
    def max_payload_length(self) -> int:
        """
        The number of characters of application text that fit into one invocation.

        >>> ProtocolParameters(max_message_length=507, message_overhead=2).max_payload_length
        505
        """
        return self.max_message_length - self.message_overhead


@dataclasses.dataclass
class TransportStatistics:
    """
    Low-level counters maintained by every transport.
    Transports may extend this type with implementation-specific counters.
    """

    out_messages: int = 0
    out_characters: int = 0
    out_errors: int = 0
    in_messages: int = 0
    in_characters: int = 0


class Transport(abc.ABC):
    """
    A point-to-point channel of discrete, bounded-size text messages, such as a remote command invocation channel.

    The channel is assumed to be reliable and to preserve the order of messages.
    It is not required to throttle the invocations; that is done by :class:`chunkline.protocol.SendQueue`.
    """

    @property
    @abc.abstractmethod
    def protocol_parameters(self) -> ProtocolParameters:
        raise NotImplementedError

    @abc.abstractmethod
    async def invoke(self, message: str) -> None:
        """
        Hands one message over to the channel. Returns when the message is accepted by the channel.

        :raises: :class:`MessageTooLongError` if the message exceeds :attr:`ProtocolParameters.max_payload_length`;
            :class:`ResourceClosedError` if the transport is closed; other :class:`TransportError` on channel failure.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def begin_reception(self, handler: ReceptionHandler) -> None:
        """
        Registers a handler that will be invoked for every received message.
        Multiple handlers may be registered; each of them receives every message.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def sample_statistics(self) -> TransportStatistics:
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:
        """
        Closes the channel. Further invocations will fail with :class:`ResourceClosedError`.
        Closing an already closed transport is not an error.
        """
        raise NotImplementedError

    def _get_repr_fields(self) -> typing.Tuple[typing.List[typing.Any], typing.Dict[str, typing.Any]]:
        """
        Implementations should override this method to provide fields for :meth:`__repr__`.
        """
        return [], {}

    def __repr__(self) -> str:
        positional, keyword = self._get_repr_fields()
        return chunkline.util.repr_attributes_noexcept(self, *positional, **keyword)
