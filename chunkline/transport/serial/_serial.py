# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import copy
import typing
import asyncio
import logging
import threading
import dataclasses
import concurrent.futures
import serial
import chunkline.util
import chunkline.transport
from chunkline.transport import ProtocolParameters, ReceptionHandler
from ._line_parser import LineParser, LINE_DELIMITER


_SERIAL_PORT_READ_TIMEOUT = 1.0

_ENCODING = "utf8"


_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class SerialTransportStatistics(chunkline.transport.TransportStatistics):
    in_bytes: int = 0
    in_out_of_band_lines: int = 0
    out_bytes: int = 0


class SerialTransport(chunkline.transport.Transport):
    """
    A line-oriented remote command channel over a byte-level serial link or tunnel
    (UART, USB CDC ACM, TCP/IP via ``socket://``, etc.).

    Every invocation is emitted as one line: the command name, a single space, the message text, and a line feed::

        ND AQAAAQBkZWFkYmVlZg==\\n

    The command name counts against the message length limit, the separator and the delimiter do not.
    Received lines that do not start with the command name are treated as out-of-band data (e.g., console output
    sharing the same link); they are logged and otherwise ignored.

    The instance must be constructed from within a running event loop.
    """

    DEFAULT_COMMAND = "ND"
    DEFAULT_MAX_MESSAGE_LENGTH = 507

    def __init__(
        self,
        serial_port: typing.Union[str, serial.SerialBase],
        *,
        command: str = DEFAULT_COMMAND,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        baudrate: typing.Optional[int] = None,
    ):
        """
        :param serial_port: The serial port instance to communicate over, or its name.
            In the latter case, the port will be constructed via :func:`serial.serial_for_url`
            (refer to the PySerial docs for the background).
            The new instance takes ownership of the port; when the instance is closed, its port will also be closed.
            Examples:

            - ``/dev/ttyACM0`` -- a regular serial port on GNU/Linux.
            - ``COM9`` -- likewise, on Windows.
            - ``socket://127.0.0.1:50905`` -- a TCP/IP tunnel instead of a physical port.
            - ``loop://`` -- a virtual loopback port; every written line is received back by the same instance.

        :param command: The name of the remote command that carries the messages. Must not contain whitespace.

        :param max_message_length: The maximum length of one invocation including the command name.

        :param baudrate: If not None, the specified baud rate will be configured on the serial port.
            Otherwise, the baudrate will be left unchanged.
        """
        if not command or any(c.isspace() for c in command):
            raise ValueError(f"Invalid command name: {command!r}")
        self._command = command
        self._prefix = (command + " ").encode(_ENCODING)
        self._protocol_parameters = ProtocolParameters(
            max_message_length=int(max_message_length),
            message_overhead=len(command),
        )
        self._loop = asyncio.get_running_loop()

        # At first glance serial.is_open would do, but close() is non-atomic on most port classes,
        # which leads to spurious errors in the reader thread. A simple explicit flag is reliable.
        self._closed = False

        # For serial port write serialization. Reads are performed concurrently in a separate thread.
        self._port_lock = asyncio.Lock()

        self._handlers: typing.List[ReceptionHandler] = []
        self._statistics = SerialTransportStatistics()

        if not isinstance(serial_port, serial.SerialBase):
            serial_port = serial.serial_for_url(serial_port)
        assert isinstance(serial_port, serial.SerialBase)
        if not serial_port.is_open:
            raise chunkline.transport.InvalidMediaConfigurationError("The serial port instance is not open")
        serial_port.timeout = _SERIAL_PORT_READ_TIMEOUT
        self._serial_port = serial_port
        if baudrate is not None:
            self._serial_port.baudrate = int(baudrate)

        self._background_executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)

        self._reader_thread = threading.Thread(target=self._reader_thread_func, daemon=True)
        self._reader_thread.start()

    @property
    def protocol_parameters(self) -> ProtocolParameters:
        return self._protocol_parameters

    @property
    def serial_port(self) -> serial.SerialBase:
        assert isinstance(self._serial_port, serial.SerialBase)
        return self._serial_port

    @property
    def command(self) -> str:
        return self._command

    async def invoke(self, message: str) -> None:
        self._ensure_not_closed()
        if len(message) > self._protocol_parameters.max_payload_length:
            self._statistics.out_errors += 1
            raise chunkline.transport.MessageTooLongError(
                f"Message of {len(message)} characters exceeds the limit of "
                f"{self._protocol_parameters.max_payload_length}"
            )
        if LINE_DELIMITER.decode(_ENCODING) in message:
            self._statistics.out_errors += 1
            raise ValueError("The message shall not contain line delimiters")

        line = self._prefix + message.encode(_ENCODING) + LINE_DELIMITER
        try:
            async with self._port_lock:
                num_written = await self._loop.run_in_executor(
                    self._background_executor, self._serial_port.write, line
                )
        except Exception as ex:
            self._statistics.out_errors += 1
            if self._closed:
                raise chunkline.transport.ResourceClosedError(f"{self} is closed, transmission aborted.") from ex
            if isinstance(ex, serial.SerialException):
                raise chunkline.transport.TransportError(f"{self}: Port write failed: {ex}") from ex
            raise

        num_written = len(line) if num_written is None else num_written
        self._statistics.out_bytes += num_written
        if num_written < len(line):
            self._statistics.out_errors += 1
            raise chunkline.transport.TransportError(f"{self}: Wrote {num_written} bytes out of {len(line)}")
        self._statistics.out_messages += 1
        self._statistics.out_characters += len(message)

    def begin_reception(self, handler: ReceptionHandler) -> None:
        self._handlers.append(handler)

    def sample_statistics(self) -> SerialTransportStatistics:
        return copy.copy(self._statistics)

    def close(self) -> None:
        self._closed = True
        self._handlers.clear()
        if self._serial_port.is_open:  # Double-close is not an error.
            self._serial_port.close()
        self._background_executor.shutdown(wait=False)

    def _handle_received_line(self, line: bytes, valid: bool) -> None:
        if self._closed:
            return
        if valid and line.startswith(self._prefix):
            try:
                message = line[len(self._prefix) :].decode(_ENCODING)
            except ValueError:
                pass
            else:
                self._statistics.in_messages += 1
                self._statistics.in_characters += len(message)
                chunkline.util.broadcast(self._handlers)(message, self._serial_port.name)
                return

        self._statistics.in_out_of_band_lines += 1
        printable: typing.Union[str, bytes] = line
        try:
            printable = line.decode(_ENCODING)
        except ValueError:
            pass
        _logger.warning("%s: Out-of-band line received: %r", self._serial_port.name, printable)

    def _reader_thread_func(self) -> None:
        def callback(line: bytes, valid: bool) -> None:
            self._loop.call_soon_threadsafe(self._handle_received_line, line, valid)

        try:
            parser = LineParser(callback, self._protocol_parameters.max_message_length * 4 + len(self._prefix))
            while not self._closed and self._serial_port.is_open:
                chunk = self._serial_port.read(max(1, self._serial_port.in_waiting))
                self._statistics.in_bytes += len(chunk)
                parser.process_next_chunk(chunk)

        except Exception as ex:  # pragma: no cover
            if self._closed or not self._serial_port.is_open:
                _logger.debug("%s: The serial port is closed, exception ignored: %r", self, ex)
            else:
                _logger.exception(
                    "%s: Reader thread has failed, the instance with port %s will be terminated: %s",
                    self,
                    self._serial_port,
                    ex,
                )
            self._closed = True
            self._serial_port.close()

        finally:
            _logger.debug("%s: Reader thread is exiting", self)

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise chunkline.transport.ResourceClosedError(f"{self} is closed")

    def _get_repr_fields(self) -> typing.Tuple[typing.List[typing.Any], typing.Dict[str, typing.Any]]:
        kwargs = {
            "command": self._command,
            "max_message_length": self._protocol_parameters.max_message_length,
            "baudrate": self._serial_port.baudrate,
        }
        return [repr(self._serial_port.name)], kwargs
