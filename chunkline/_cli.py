# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
Command-line tool for sending files over a serial command channel and for receiving them.
The settings not given on the command line are read from the environment variables,
see :class:`chunkline.application.Config`.
"""

from __future__ import annotations
import sys
import typing
import asyncio
import logging
import pathlib
import argparse
import dataclasses
import chunkline
from chunkline.application import Config, make_endpoint


_logger = logging.getLogger(__name__)


def _make_config(args: argparse.Namespace) -> Config:
    cfg = Config.from_environment()
    overrides: typing.Dict[str, typing.Any] = {"serial_port": args.port}
    if args.baudrate is not None:
        overrides["serial_baudrate"] = args.baudrate
    if args.command is not None:
        overrides["command"] = args.command
    if args.interval is not None:
        overrides["send_interval"] = args.interval
    return dataclasses.replace(cfg, **overrides)


async def _send(args: argparse.Namespace) -> int:
    payload = pathlib.Path(args.file).read_bytes()
    endpoint = make_endpoint(config=_make_config(args))
    try:
        payload_id = endpoint.send(args.topic, payload)
        await endpoint.flush()
        stats = endpoint.sender.sample_statistics()
        _logger.info("Payload-ID %d sent: %r", payload_id, stats)
        return 0 if stats.errors == 0 else 1
    finally:
        endpoint.close()


async def _listen(args: argparse.Namespace) -> int:
    output = pathlib.Path(args.output)
    output.mkdir(parents=True, exist_ok=True)
    done = asyncio.Event()
    received = 0

    def on_payload(sender: typing.Any, payload: bytes) -> None:
        nonlocal received
        received += 1
        path = output / f"{args.topic}-{received}.bin"
        path.write_bytes(payload)
        _logger.info("%d bytes from %r written to %s", len(payload), sender, path)
        if args.count is not None and received >= args.count:
            done.set()

    endpoint = make_endpoint(config=_make_config(args))
    try:
        endpoint.subscribe(args.topic, on_payload)
        await done.wait()
        return 0
    finally:
        endpoint.close()


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chunkline", description=__doc__)
    parser.add_argument("--version", action="version", version=chunkline.__version__)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("port", help="Serial port name or URL, e.g.: /dev/ttyACM0, COM9, socket://localhost:50905")
    common.add_argument("topic", help="The topic to send the payload under or to listen to.")
    common.add_argument("--baudrate", type=int, default=None, help="Leave the baud rate unchanged if not given.")
    common.add_argument("--command", default=None, help="The name of the remote command. Default: ND")
    common.add_argument("--interval", type=float, default=None, help="Seconds between invocations. Default: 0.03")
    common.add_argument("--verbose", "-v", default=False, action="store_true", help="Increase logging verbosity.")

    sub = parser.add_subparsers(dest="action", required=True)

    snd = sub.add_parser("send", parents=[common], help="Send a file as one payload.")
    snd.add_argument("file", help="The file to send.")
    snd.set_defaults(func=_send)

    lsn = sub.add_parser("listen", parents=[common], help="Write the received payloads into files.")
    lsn.add_argument("--output", "-o", default=".", help="The directory to write the files into.")
    lsn.add_argument("--count", "-n", type=int, default=None, help="Exit after this many payloads.")
    lsn.set_defaults(func=_listen)

    return parser


def main(argv: typing.Optional[typing.Sequence[str]] = None) -> int:
    args = _make_parser().parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        return 1
    except Exception as ex:  # pylint: disable=broad-except
        _logger.debug("Unhandled exception", exc_info=True)
        print(f"Error: {ex}", file=sys.stderr)
        return 1


def _unittest_parser() -> None:
    from pytest import raises

    args = _make_parser().parse_args(["send", "loop://", "map", "map.bin", "--interval", "0.01"])
    assert args.func is _send
    assert args.port == "loop://"
    assert args.topic == "map"
    assert args.file == "map.bin"
    cfg = _make_config(args)
    assert cfg.serial_port == "loop://"
    assert cfg.send_interval == 0.01
    assert cfg.command == Config.command

    args = _make_parser().parse_args(["listen", "COM9", "save", "-n", "3", "--command", "data"])
    assert args.func is _listen
    assert args.count == 3
    assert _make_config(args).command == "data"

    with raises(SystemExit):
        _make_parser().parse_args(["send", "loop://"])
