# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
from typing import Optional
import chunkline.transport
from ._config import Config


def make_transport(config: Optional[Config] = None) -> Optional[chunkline.transport.Transport]:
    """
    Construct a transport instance based on the configuration.
    If no configuration is given, it is read from the environment variables; see :meth:`Config.from_environment`.

    ..  list-table::
        :widths: 1 9
        :header-rows: 1

        * - Register name
          - Register semantics

        * - ``chunkline.serial.port``
          - The serial port name or URL. If set, a :class:`chunkline.transport.serial.SerialTransport` is constructed.
            The remaining ``chunkline.serial.*`` and ``chunkline.transport.*`` registers apply to it.

        * - ``chunkline.loopback``
          - If True and no serial port is configured, a :class:`chunkline.transport.loopback.LoopbackTransport`
            is constructed. This is intended for testing only.

    The serial transport shall be constructed from within a running event loop.

    :return: None if no transport is configured, the transport instance otherwise.

    >>> tr = make_transport(Config(loopback=True, max_message_length=100, command='data'))
    >>> tr
    LoopbackTransport(None, max_payload_length=96)
    >>> tr.close()
    >>> make_transport(Config()) is None
    True
    """
    config = Config.from_environment() if config is None else config

    if config.serial_port:
        from chunkline.transport.serial import SerialTransport

        return SerialTransport(
            config.serial_port,
            command=config.command,
            max_message_length=config.max_message_length,
            baudrate=config.serial_baudrate,
        )

    if config.loopback:
        from chunkline.transport.loopback import LoopbackTransport

        return LoopbackTransport(
            protocol_parameters=chunkline.transport.ProtocolParameters(
                max_message_length=config.max_message_length,
                message_overhead=len(config.command),
            )
        )

    return None
