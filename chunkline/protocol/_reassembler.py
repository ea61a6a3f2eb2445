# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import copy
import enum
import time
import typing
import logging
import dataclasses
import chunkline.util
from ._packet import Packet
from ._error import MalformedPacketError


_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ReassemblyStatistics:
    packets: int = 0
    """Valid packets accepted into a buffer."""

    frames: int = 0
    """Frames completed and returned."""

    malformed: int = 0
    """Messages rejected with :class:`MalformedPacketError`."""

    duplicates: int = 0
    """Packets that replaced an already received fragment with the same index."""

    errors: typing.Dict[ReassemblyStore.Error, int] = dataclasses.field(default_factory=dict)
    """Partial buffers discarded, per reason."""


@dataclasses.dataclass
class _Buffer:
    fragment_count: int
    created_at: float
    fragments: typing.Dict[int, bytes] = dataclasses.field(default_factory=dict)


class ReassemblyStore:
    """
    Receive-side state of the protocol: one partial buffer per payload-ID.

    Fragments can arrive in any order; each one is stored by its index, and the last one written wins if an index
    is received twice. Once a buffer holds as many fragments as the fragment count stated in the packets,
    the fragments are joined in index order, the buffer is removed, and the frame is returned exactly once.
    A later packet with the same payload-ID starts a new buffer.

    Errors are local to one payload-ID: a malformed packet never affects the buffers of other payloads.

    By default, a partial buffer whose remaining fragments never arrive is kept forever.
    Optionally, stale buffers can be evicted by age, and the number of concurrent partial buffers can be limited,
    in which case the oldest buffer is evicted to make room for a new one.
    """

    class Error(enum.Enum):
        """
        Reasons for discarding a partial buffer.
        Whenever a buffer is discarded, the corresponding error counter is incremented by one,
        and a report with the buffer context is logged.
        """

        INCONSISTENT_FRAGMENT_COUNT = enum.auto()
        """
        A packet stated a fragment count different from the one of the buffer open for its payload-ID.
        This happens when the payload-ID is reused while an older payload is still incomplete.
        The old buffer is discarded and a new one is started with the packet.
        """

        FRAGMENT_INDEX_OUT_OF_RANGE = enum.auto()
        """
        A packet with a valid header but a fragment index not below its fragment count.
        The reassembly of its payload is abandoned.
        """

        EXPIRED = enum.auto()
        """
        The buffer was older than the maximum age.
        """

        CAPACITY_EXCEEDED = enum.auto()
        """
        The buffer was the oldest one when the maximum number of buffers was reached.
        """

    def __init__(
        self,
        *,
        max_age: typing.Optional[float] = None,
        max_buffers: typing.Optional[int] = None,
        clock: typing.Callable[[], float] = time.monotonic,
    ):
        """
        :param max_age: If set, partial buffers older than this many seconds are discarded.
            The age is counted from the reception of the first fragment.

        :param max_buffers: If set, at most this many partial buffers are kept; the oldest one is discarded
            when a new payload arrives while the limit is reached.

        :param clock: The monotonic time source in seconds.
        """
        if max_age is not None and max_age <= 0:
            raise ValueError(f"Invalid max age: {max_age}")
        if max_buffers is not None and max_buffers < 1:
            raise ValueError(f"Invalid max number of buffers: {max_buffers}")
        self._max_age = max_age
        self._max_buffers = max_buffers
        self._clock = clock
        self._buffers: typing.Dict[int, _Buffer] = {}
        self._statistics = ReassemblyStatistics()

    @property
    def pending(self) -> typing.Dict[int, typing.Tuple[int, int]]:
        """
        The payload-IDs of incomplete payloads mapped onto (fragments received, fragment count).
        """
        return {pid: (len(b.fragments), b.fragment_count) for pid, b in self._buffers.items()}

    def receive(self, encoded_packet: str) -> typing.Optional[bytes]:
        """
        Decodes the text received from the channel and processes the packet.

        :returns: The reassembled frame if this packet completed one, None otherwise.

        :raises: :class:`MalformedPacketError` if the text does not contain a valid packet; see :meth:`decode`.
        """
        return self.process_packet(self.decode(encoded_packet))

    def decode(self, encoded_packet: str) -> Packet:
        """
        Decodes the text received from the channel into a packet without storing it.

        :raises: :class:`MalformedPacketError` if the text does not contain a valid packet.
            No buffer is altered in that case, except if the payload-ID is known from the header
            (only the fragment index is invalid); then the buffer of that payload is discarded.
        """
        try:
            return Packet.decode_text(encoded_packet)
        except MalformedPacketError as ex:
            self._statistics.malformed += 1
            if ex.payload_id is not None and ex.payload_id in self._buffers:
                self._discard(ex.payload_id, self.Error.FRAGMENT_INDEX_OUT_OF_RANGE)
            raise

    def process_packet(self, packet: Packet) -> typing.Optional[bytes]:
        """
        :returns: The reassembled frame if this packet completed one, None otherwise.
        """
        now = self._clock()
        self._evict_expired(now)

        buf = self._buffers.get(packet.payload_id)
        if buf is not None and buf.fragment_count != packet.fragment_count:
            self._discard(packet.payload_id, self.Error.INCONSISTENT_FRAGMENT_COUNT)
            buf = None
        if buf is None:
            if self._max_buffers is not None and len(self._buffers) >= self._max_buffers:
                oldest = min(self._buffers, key=lambda pid: self._buffers[pid].created_at)
                self._discard(oldest, self.Error.CAPACITY_EXCEEDED)
            buf = _Buffer(fragment_count=packet.fragment_count, created_at=now)
            self._buffers[packet.payload_id] = buf

        if packet.fragment_index in buf.fragments:
            self._statistics.duplicates += 1
        buf.fragments[packet.fragment_index] = packet.data
        self._statistics.packets += 1

        if len(buf.fragments) < buf.fragment_count:
            return None

        del self._buffers[packet.payload_id]
        out = b"".join(buf.fragments[i] for i in range(buf.fragment_count))
        self._statistics.frames += 1
        _logger.debug(
            "%s: Payload-ID %d complete: %d fragments, %d bytes", self, packet.payload_id, buf.fragment_count, len(out)
        )
        return out

    def clear(self) -> None:
        """
        Discards all partial buffers without counting them as errors.
        """
        self._buffers.clear()

    def sample_statistics(self) -> ReassemblyStatistics:
        out = copy.copy(self._statistics)
        out.errors = dict(self._statistics.errors)
        return out

    def _evict_expired(self, now: float) -> None:
        if self._max_age is None:
            return
        for pid in [pid for pid, b in self._buffers.items() if now - b.created_at > self._max_age]:
            self._discard(pid, self.Error.EXPIRED)

    def _discard(self, payload_id: int, error: ReassemblyStore.Error) -> None:
        buf = self._buffers.pop(payload_id)
        self._statistics.errors[error] = self._statistics.errors.get(error, 0) + 1
        # The report is made before the context is lost.
        _logger.warning(
            "%s: Payload-ID %d discarded: %s: fragments=%d/%d bytes=%d age=%.3fs",
            self,
            payload_id,
            error.name,
            len(buf.fragments),
            buf.fragment_count,
            sum(map(len, buf.fragments.values())),
            self._clock() - buf.created_at,
        )

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes_noexcept(
            self, pending=len(self._buffers), max_age=self._max_age, max_buffers=self._max_buffers
        )


def _unittest_reassembly_order() -> None:
    import itertools
    from ._packet import fragment

    data = bytes(range(256)) * 3
    packets = fragment(7, data, 100)
    assert len(packets) == 8

    for perm in itertools.islice(itertools.permutations(packets), 0, 5000, 97):
        rs = ReassemblyStore()
        results = [rs.process_packet(p) for p in perm]
        assert results[:-1] == [None] * (len(perm) - 1)
        assert results[-1] == data
        assert rs.pending == {}

    rs = ReassemblyStore()
    for p in reversed(packets[1:]):
        assert rs.process_packet(p) is None
    assert rs.pending == {7: (7, 8)}
    assert rs.process_packet(packets[0]) == data
    assert rs.pending == {}

    # The same payload-ID starts a new buffer once the previous payload is complete.
    assert rs.process_packet(packets[3]) is None
    assert rs.pending == {7: (1, 8)}
    assert rs.sample_statistics().frames == 1


def _unittest_reassembly_interleaved() -> None:
    from ._packet import fragment

    a = fragment(1, b"a" * 25, 10)
    b = fragment(2, b"b" * 15, 10)
    rs = ReassemblyStore()
    assert rs.process_packet(a[0]) is None
    assert rs.process_packet(b[1]) is None
    assert rs.process_packet(a[2]) is None
    assert rs.pending == {1: (2, 3), 2: (1, 2)}
    assert rs.process_packet(b[0]) == b"b" * 15
    assert rs.process_packet(a[1]) == b"a" * 25
    assert rs.pending == {}


def _unittest_reassembly_duplicates() -> None:
    rs = ReassemblyStore()
    assert rs.process_packet(Packet(3, 0, 2, b"old")) is None
    assert rs.process_packet(Packet(3, 0, 2, b"new")) is None
    assert rs.pending == {3: (1, 2)}
    assert rs.process_packet(Packet(3, 1, 2, b"!")) == b"new!"
    assert rs.sample_statistics().duplicates == 1

    # A fragment received again after completion starts a new payload rather than completing one twice.
    assert rs.process_packet(Packet(3, 1, 2, b"!")) is None
    assert rs.sample_statistics().frames == 1


def _unittest_reassembly_single_fragment() -> None:
    rs = ReassemblyStore()
    assert rs.receive(Packet(0, 0, 1, b"").encode_text()) == b""
    assert rs.receive(Packet(254, 0, 1, b"x").encode_text()) == b"x"
    assert rs.pending == {}


def _unittest_reassembly_malformed() -> None:
    import base64
    from pytest import raises

    rs = ReassemblyStore()
    assert rs.process_packet(Packet(9, 0, 3, b"abc")) is None

    with raises(MalformedPacketError):
        rs.receive(base64.b64encode(b"\x09\x01").decode())
    with raises(MalformedPacketError):
        rs.receive("not base64!")
    assert rs.pending == {9: (1, 3)}

    # A bad index of another payload does not affect this one.
    with raises(MalformedPacketError) as ei:
        rs.receive(base64.b64encode(b"\x05\x03\x00\x03\x00xyz").decode())
    assert ei.value.payload_id == 5
    assert rs.pending == {9: (1, 3)}

    # A bad index of this payload abandons it.
    with raises(MalformedPacketError) as ei:
        rs.receive(base64.b64encode(b"\x09\x07\x00\x03\x00xyz").decode())
    assert ei.value.payload_id == 9
    assert rs.pending == {}

    stats = rs.sample_statistics()
    assert stats.malformed == 4
    assert stats.errors == {ReassemblyStore.Error.FRAGMENT_INDEX_OUT_OF_RANGE: 1}


def _unittest_reassembly_inconsistent_count() -> None:
    rs = ReassemblyStore()
    assert rs.process_packet(Packet(4, 0, 3, b"old")) is None
    assert rs.process_packet(Packet(4, 1, 3, b"old")) is None
    assert rs.process_packet(Packet(4, 1, 2, b"B")) is None
    assert rs.pending == {4: (1, 2)}
    assert rs.process_packet(Packet(4, 0, 2, b"A")) == b"AB"
    assert rs.sample_statistics().errors == {ReassemblyStore.Error.INCONSISTENT_FRAGMENT_COUNT: 1}


def _unittest_reassembly_eviction() -> None:
    from pytest import raises

    with raises(ValueError):
        ReassemblyStore(max_age=0)
    with raises(ValueError):
        ReassemblyStore(max_buffers=0)

    now = 0.0

    def clock() -> float:
        return now

    rs = ReassemblyStore(max_age=10.0, clock=clock)
    assert rs.process_packet(Packet(1, 0, 2, b"a")) is None
    now = 5.0
    assert rs.process_packet(Packet(2, 0, 2, b"b")) is None
    now = 10.0
    assert rs.process_packet(Packet(1, 1, 2, b"A")) == b"aA"  # Exactly at the limit is not expired yet.
    assert rs.process_packet(Packet(3, 0, 2, b"c")) is None
    now = 15.5
    assert rs.process_packet(Packet(3, 1, 2, b"C")) == b"cC"
    assert rs.pending == {}
    assert rs.sample_statistics().errors == {ReassemblyStore.Error.EXPIRED: 1}

    now = 0.0
    rs = ReassemblyStore(max_buffers=2, clock=clock)
    assert rs.process_packet(Packet(1, 0, 2, b"a")) is None
    now = 1.0
    assert rs.process_packet(Packet(2, 0, 2, b"b")) is None
    now = 2.0
    assert rs.process_packet(Packet(2, 1, 2, b"B")) == b"bB"
    assert rs.process_packet(Packet(3, 0, 2, b"c")) is None
    assert rs.process_packet(Packet(4, 0, 2, b"d")) is None
    assert set(rs.pending) == {3, 4}
    assert rs.sample_statistics().errors == {ReassemblyStore.Error.CAPACITY_EXCEEDED: 1}

    rs.clear()
    assert rs.pending == {}
    assert rs.sample_statistics().errors == {ReassemblyStore.Error.CAPACITY_EXCEEDED: 1}
