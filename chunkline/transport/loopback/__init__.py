# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
In-process channel where every invoked message is delivered back to the same transport instance.
"""

from ._loopback import LoopbackTransport as LoopbackTransport
from ._loopback import LoopbackTransportStatistics as LoopbackTransportStatistics
