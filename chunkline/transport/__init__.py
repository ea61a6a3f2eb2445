# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
Abstract transport model
++++++++++++++++++++++++

The transport layer models the channel the payloads are delivered over: a point-to-point sequence of
discrete text messages of bounded length, each one being a separate invocation of the channel
(for example, one remote console command per message).
The channel is assumed to be reliable and ordered; it neither drops nor duplicates messages.

The main component is the interface class :class:`chunkline.transport.Transport`.
Concrete implementations are not auto-imported:

- :mod:`chunkline.transport.loopback` -- in-process channel for testing and demonstration.
- :mod:`chunkline.transport.serial` -- line-oriented command channel over a serial port or a TCP tunnel.
"""

from ._transport import Transport as Transport
from ._transport import ProtocolParameters as ProtocolParameters
from ._transport import TransportStatistics as TransportStatistics
from ._transport import ReceptionHandler as ReceptionHandler

from ._error import TransportError as TransportError
from ._error import InvalidMediaConfigurationError as InvalidMediaConfigurationError
from ._error import ResourceClosedError as ResourceClosedError
from ._error import MessageTooLongError as MessageTooLongError
