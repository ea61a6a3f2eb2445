# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import os
import typing
import logging
import dataclasses


_logger = logging.getLogger(__name__)


class ValueConversionError(ValueError):
    """
    The value of an environment variable cannot be converted to the type of the register.
    """


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Not a boolean: {text!r}")


_REGISTERS: typing.Dict[str, typing.Tuple[str, typing.Callable[[str], typing.Any]]] = {
    "chunkline.transport.max_message_length": ("max_message_length", int),
    "chunkline.transport.command": ("command", str),
    "chunkline.loopback": ("loopback", _parse_bool),
    "chunkline.serial.port": ("serial_port", str),
    "chunkline.serial.baudrate": ("serial_baudrate", int),
    "chunkline.send.interval": ("send_interval", float),
    "chunkline.send.compression_level": ("compression_level", int),
    "chunkline.send.track_payload_ids": ("track_payload_ids", _parse_bool),
    "chunkline.receive.namespace": ("namespace", str),
    "chunkline.receive.max_age": ("max_age", float),
    "chunkline.receive.max_buffers": ("max_buffers", int),
}


def environment_variable_name(register_name: str) -> str:
    """
    Register names are mapped to environment variable names by upper-casing and replacing dots with
    double underscores.

    >>> environment_variable_name('chunkline.send.interval')
    'CHUNKLINE__SEND__INTERVAL'
    """
    return register_name.upper().replace(".", "__")


@dataclasses.dataclass
class Config:
    """
    The settings of an endpoint. Each field is a register that can be set via an environment variable;
    see :meth:`from_environment`. The defaults describe the classic remote console command channel:
    507 characters per invocation, two of which are taken by the command name, 30 ms between invocations.
    """

    max_message_length: int = 507
    """``chunkline.transport.max_message_length`` -- characters per invocation, including the command name."""

    command: str = "ND"
    """``chunkline.transport.command`` -- the name of the remote command; its length is the per-message overhead."""

    loopback: bool = False
    """``chunkline.loopback`` -- use the loopback transport if no serial port is configured."""

    serial_port: typing.Optional[str] = None
    """``chunkline.serial.port`` -- the serial port name or URL, e.g. ``/dev/ttyACM0`` or ``socket://host:50905``."""

    serial_baudrate: typing.Optional[int] = None
    """``chunkline.serial.baudrate`` -- leave the baud rate unchanged if not set."""

    send_interval: float = 0.030
    """``chunkline.send.interval`` -- seconds between invocations of the channel."""

    compression_level: int = 6
    """``chunkline.send.compression_level`` -- zlib level, 0 to 9."""

    track_payload_ids: bool = True
    """``chunkline.send.track_payload_ids`` -- do not reuse the payload-IDs of payloads still being sent."""

    namespace: str = "received"
    """``chunkline.receive.namespace`` -- the prefix of the event names raised for received payloads."""

    max_age: typing.Optional[float] = None
    """``chunkline.receive.max_age`` -- discard incomplete payloads older than this many seconds."""

    max_buffers: typing.Optional[int] = None
    """``chunkline.receive.max_buffers`` -- the maximum number of incomplete payloads kept at once."""

    @staticmethod
    def from_environment(environ: typing.Optional[typing.Mapping[str, str]] = None) -> Config:
        """
        Constructs the configuration from the defaults updated from the environment variables.

        :param environ: The environment to read; :data:`os.environ` by default.

        :raises: :class:`ValueConversionError` if a variable contains a value that cannot be converted.

        >>> Config.from_environment({'CHUNKLINE__SEND__INTERVAL': '0.1', 'CHUNKLINE__LOOPBACK': '1'}).send_interval
        0.1
        """
        environ = os.environ if environ is None else environ
        out = Config()
        for register_name, (field_name, convert) in _REGISTERS.items():
            env_name = environment_variable_name(register_name)
            try:
                env_val = environ[env_name]
            except LookupError:
                continue
            try:
                value = convert(env_val)
            except ValueError:
                raise ValueConversionError(
                    f"Cannot update register {register_name!r} from environment value {env_val!r}"
                ) from None
            _logger.debug("Register %r updated from %s: %r", register_name, env_name, value)
            setattr(out, field_name, value)
        return out


def _unittest_config_from_environment() -> None:
    from pytest import raises

    assert Config.from_environment({}) == Config()

    cfg = Config.from_environment(
        {
            "CHUNKLINE__TRANSPORT__MAX_MESSAGE_LENGTH": "100",
            "CHUNKLINE__TRANSPORT__COMMAND": "data",
            "CHUNKLINE__SERIAL__PORT": "socket://localhost:50905",
            "CHUNKLINE__SERIAL__BAUDRATE": "115200",
            "CHUNKLINE__SEND__TRACK_PAYLOAD_IDS": "no",
            "CHUNKLINE__RECEIVE__NAMESPACE": "ndata.received",
            "CHUNKLINE__RECEIVE__MAX_AGE": "30",
            "CHUNKLINE__RECEIVE__MAX_BUFFERS": "8",
            "UNRELATED": "ignored",
        }
    )
    assert cfg.max_message_length == 100
    assert cfg.command == "data"
    assert cfg.serial_port == "socket://localhost:50905"
    assert cfg.serial_baudrate == 115200
    assert cfg.track_payload_ids is False
    assert cfg.namespace == "ndata.received"
    assert cfg.max_age == 30.0
    assert cfg.max_buffers == 8
    assert cfg.send_interval == Config().send_interval

    with raises(ValueConversionError):
        Config.from_environment({"CHUNKLINE__SEND__INTERVAL": "fast"})

    with raises(ValueConversionError):
        Config.from_environment({"CHUNKLINE__LOOPBACK": "maybe"})
