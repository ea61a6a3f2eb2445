# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.


class TransportError(RuntimeError):
    """
    This is the root exception class for all transport-related errors.
    Exception types defined by transport implementations shall inherit from this type.
    """


class InvalidMediaConfigurationError(TransportError):
    """
    The underlying channel (e.g., the serial port) cannot be used in the requested configuration.
    """


class ResourceClosedError(TransportError):
    """
    Raised when an action is attempted on a transport that has been closed.
    Once closed, a transport cannot be reopened.
    """


class MessageTooLongError(TransportError):
    """
    The message does not fit into a single invocation of the channel.
    The protocol layer never produces such messages as long as the packet size is derived from
    :attr:`ProtocolParameters.max_payload_length`.
    """
