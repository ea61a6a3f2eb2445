# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import copy
import typing
import logging
import dataclasses
import chunkline.util
import chunkline.transport
from chunkline.transport import ProtocolParameters, ReceptionHandler


_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class LoopbackTransportStatistics(chunkline.transport.TransportStatistics):
    pass


class LoopbackTransport(chunkline.transport.Transport):
    """
    The loopback transport is intended for testing and API usage demonstrations.
    Every invoked message is delivered synchronously to all reception handlers registered on the same instance,
    as if the sender and the receiver were connected by an ideal channel.
    """

    DEFAULT_PROTOCOL_PARAMETERS = ProtocolParameters(max_message_length=507, message_overhead=2)

    def __init__(
        self,
        identity: typing.Any = None,
        *,
        protocol_parameters: ProtocolParameters = DEFAULT_PROTOCOL_PARAMETERS,
    ):
        """
        :param identity: The sender identity reported to the reception handlers.
        :param protocol_parameters: The message length limits to emulate.
        """
        self._identity = identity
        self._protocol_parameters = protocol_parameters
        self._handlers: typing.List[ReceptionHandler] = []
        self._invoke_result: typing.Optional[Exception] = None
        self._statistics = LoopbackTransportStatistics()
        self._closed = False

    @property
    def protocol_parameters(self) -> ProtocolParameters:
        return self._protocol_parameters

    @protocol_parameters.setter
    def protocol_parameters(self, value: ProtocolParameters) -> None:
        if isinstance(value, ProtocolParameters):
            self._protocol_parameters = value
        else:  # pragma: no cover
            raise ValueError(f"Unexpected value: {value}")

    @property
    def identity(self) -> typing.Any:
        return self._identity

    @property
    def invoke_result(self) -> typing.Optional[Exception]:
        """
        Test rigging. If None, :meth:`invoke` succeeds (this is the default).
        If an exception instance, it will be raised from every invocation and nothing will be delivered.
        """
        return self._invoke_result

    @invoke_result.setter
    def invoke_result(self, value: typing.Optional[Exception]) -> None:
        self._invoke_result = value

    async def invoke(self, message: str) -> None:
        if self._closed:
            raise chunkline.transport.ResourceClosedError(f"{self} is closed")
        if len(message) > self._protocol_parameters.max_payload_length:
            self._statistics.out_errors += 1
            raise chunkline.transport.MessageTooLongError(
                f"Message of {len(message)} characters exceeds the limit of "
                f"{self._protocol_parameters.max_payload_length}"
            )
        if self._invoke_result is not None:
            self._statistics.out_errors += 1
            raise self._invoke_result

        self._statistics.out_messages += 1
        self._statistics.out_characters += len(message)
        self._statistics.in_messages += 1
        self._statistics.in_characters += len(message)
        _logger.debug("%s: Delivering %d characters to %d handlers", self, len(message), len(self._handlers))
        chunkline.util.broadcast(self._handlers)(message, self._identity)

    def begin_reception(self, handler: ReceptionHandler) -> None:
        self._handlers.append(handler)

    def sample_statistics(self) -> LoopbackTransportStatistics:
        return copy.copy(self._statistics)

    def close(self) -> None:
        self._closed = True
        self._handlers.clear()

    def _get_repr_fields(self) -> typing.Tuple[typing.List[typing.Any], typing.Dict[str, typing.Any]]:
        return [repr(self._identity)], {"max_payload_length": self._protocol_parameters.max_payload_length}
