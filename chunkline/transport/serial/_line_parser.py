# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import typing


LINE_DELIMITER = b"\n"


class LineParser:
    """
    A line parser is fed with bytes received from the channel.
    Whenever a complete line is accumulated, the callback is invoked with the line contents
    (without the delimiter and without the trailing carriage return, if any).

    Lines that exceed the length limit cannot possibly be valid command invocations;
    they are delivered into the callback with the validity flag cleared, as "out-of-band" data,
    and the parser resynchronizes at the next delimiter.
    An empty line is never reported.
    """

    def __init__(self, callback: typing.Callable[[bytes, bool], None], max_line_length: int):
        """
        :param callback: Invoked with (line, valid) for every line.
            The line is invalid if it exceeded the length limit; only its first part is reported in that case.

        :param max_line_length: Lines longer than this many bytes (excluding the delimiter) are invalid.
            This is to shield the parser against OOM errors when subjected to an endless stream without delimiters.
        """
        if not (callable(callback) and max_line_length > 0):
            raise ValueError("Invalid parameters")

        self._callback = callback
        self._max_line_length = int(max_line_length)
        self._buffer = bytearray()
        self._overflow = False

    def process_next_chunk(self, chunk: typing.Union[bytes, bytearray, memoryview]) -> None:
        for b in bytes(chunk):
            if b == LINE_DELIMITER[0]:
                self._finalize()
            elif not self._overflow:
                self._buffer.append(b)
                if len(self._buffer) > self._max_line_length:
                    self._callback(bytes(self._buffer), False)
                    self._buffer = bytearray()
                    self._overflow = True

    def _finalize(self) -> None:
        if self._overflow:
            self._overflow = False  # The tail of the overlong line is dropped silently.
            self._buffer = bytearray()
            return
        line = bytes(self._buffer).rstrip(b"\r")
        self._buffer = bytearray()
        if line:
            self._callback(line, True)


def _unittest_line_parser() -> None:
    from pytest import raises

    outputs: typing.List[typing.Tuple[bytes, bool]] = []

    with raises(ValueError):
        LineParser(lambda *_: None, 0)

    lp = LineParser(lambda line, valid: outputs.append((line, valid)), 8)

    def proc(b: bytes) -> typing.List[typing.Tuple[bytes, bool]]:
        lp.process_next_chunk(b)
        out = outputs[:]
        outputs.clear()
        return out

    assert [] == proc(b"")
    assert [] == proc(b"ND AQ")
    assert [(b"ND AQID", True)] == proc(b"ID\r\n")
    assert [] == proc(b"\n\r\n")
    assert [(b"one", True), (b"two", True)] == proc(b"one\ntwo\nthr")
    assert [(b"three", True)] == proc(b"ee\n")

    # Overlong line: the first part is reported as invalid, the rest is dropped until the delimiter.
    assert [(b"012345678", False)] == proc(b"0123456789abcdef")
    assert [] == proc(b"ghij\n")
    assert [(b"ok", True)] == proc(b"ok\n")
