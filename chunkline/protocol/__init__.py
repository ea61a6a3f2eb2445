# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
The chunking protocol
+++++++++++++++++++++

This module contains the algorithms that carry a payload of arbitrary size over a channel of short text messages.
The sending side performs the following steps:

1. :func:`frame` -- the topic and the body are combined into a frame; the body is deflated if that helps.
2. :func:`fragment` -- the frame is split into packets that fit into one message each after base64 encoding.
   The packets of one payload share a payload-ID assigned by :class:`PayloadIDAllocator`.
3. :class:`SendQueue` -- the packets are handed over to the transport one by one at a fixed rate.

The receiving side feeds every message into :class:`ReassemblyStore`, which returns the frame once all of its
packets are received; :func:`unframe` then recovers the topic and the body.

The packet header carries enough information to reassemble the frame regardless of the order of arrival.
There is no retransmission: the channel is assumed to be reliable.
"""

from ._error import ProtocolError as ProtocolError
from ._error import MalformedPacketError as MalformedPacketError
from ._error import MalformedFrameError as MalformedFrameError
from ._error import DecompressionFailedError as DecompressionFailedError
from ._error import PayloadIDExhaustionError as PayloadIDExhaustionError

from ._compression import compress as compress
from ._compression import decompress as decompress
from ._compression import DEFAULT_COMPRESSION_LEVEL as DEFAULT_COMPRESSION_LEVEL

from ._frame import PayloadFormat as PayloadFormat
from ._frame import frame as frame
from ._frame import unframe as unframe

from ._packet import Packet as Packet
from ._packet import fragment as fragment
from ._packet import compute_max_fragment_payload as compute_max_fragment_payload
from ._packet import HEADER_SIZE as HEADER_SIZE
from ._packet import PAYLOAD_ID_MODULO as PAYLOAD_ID_MODULO

from ._payload_id import PayloadIDAllocator as PayloadIDAllocator

from ._send_queue import SendQueue as SendQueue
from ._send_queue import SendQueueStatistics as SendQueueStatistics

from ._reassembler import ReassemblyStore as ReassemblyStore
from ._reassembler import ReassemblyStatistics as ReassemblyStatistics
