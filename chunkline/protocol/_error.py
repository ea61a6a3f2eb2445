# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import typing


class ProtocolError(ValueError):
    """
    This is the root exception class for errors detected by the chunking protocol.
    An error of this kind concerns a single packet or a single payload; other payloads in flight are not affected.
    """


class MalformedPacketError(ProtocolError):
    """
    A received message could not be decoded into a valid packet: it is not valid base64, it is shorter than the
    packet header, or its header fields are inconsistent.

    If the header could be read and only the fragment index was invalid, :attr:`payload_id` names the payload
    whose reassembly cannot be completed anymore; otherwise it is None.
    """

    def __init__(self, message: str, payload_id: typing.Optional[int] = None) -> None:
        super().__init__(message)
        self.payload_id = payload_id


class MalformedFrameError(ProtocolError):
    """
    A reassembled frame could not be unwrapped: its format tag is unknown or its topic string is damaged.
    """


class DecompressionFailedError(ProtocolError):
    """
    The frame claims its content is deflate-compressed but the content cannot be inflated.
    Since the format tag asserted compression, this indicates corruption; the payload is unusable.
    """


class PayloadIDExhaustionError(ProtocolError):
    """
    All payload-ID values are occupied by payloads that are still in flight,
    so a new payload cannot be started without corrupting the reassembly of an older one.
    """
