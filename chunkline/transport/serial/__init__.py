# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
Line-oriented command channel over byte-level serial links and tunnels.

This transport module contains no media sublayers because the media abstraction
is handled directly by the `PySerial <https://pypi.org/project/pyserial>`_
library and the underlying operating system.

Every message is a line of the form ``<command> <text>``, terminated with a line feed.
The receiving side may be anything that interprets such lines as command invocations,
such as the console of a remote application, or another instance of this transport.
"""

from ._serial import SerialTransport as SerialTransport
from ._serial import SerialTransportStatistics as SerialTransportStatistics

from ._line_parser import LineParser as LineParser
