# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import typing
import logging
import chunkline.util
from ._error import PayloadIDExhaustionError
from ._packet import PAYLOAD_ID_MODULO


_logger = logging.getLogger(__name__)


class PayloadIDAllocator:
    """
    Payload-IDs are assigned by a counter modulo 255 starting from 1, so the sequence is 1, 2, ..., 254, 0, 1, ...

    The ID space is small; if more than 255 payloads were in flight at once, a new payload would reuse the ID
    of an undelivered one and corrupt its reassembly on the receiving side.
    If ``track_active`` is set, the allocator remembers which IDs are in flight until they are released,
    skips them, and raises :class:`PayloadIDExhaustionError` if none is free.
    Otherwise, the counter wraps around unconditionally.

    >>> a = PayloadIDAllocator()
    >>> [a.allocate() for _ in range(3)]
    [1, 2, 3]
    """

    def __init__(self, track_active: bool = False) -> None:
        self._track_active = bool(track_active)
        self._last = 0
        self._active: typing.Set[int] = set()

    @property
    def track_active(self) -> bool:
        return self._track_active

    @property
    def active(self) -> typing.FrozenSet[int]:
        """
        The IDs that have been allocated and not yet released. Always empty unless tracking is enabled.
        """
        return frozenset(self._active)

    def allocate(self) -> int:
        """
        :raises: :class:`PayloadIDExhaustionError` if tracking is enabled and all IDs are in flight.
        """
        for _ in range(PAYLOAD_ID_MODULO):
            self._last = (self._last + 1) % PAYLOAD_ID_MODULO
            if not self._track_active:
                return self._last
            if self._last not in self._active:
                self._active.add(self._last)
                return self._last
        _logger.warning("%s: All payload-IDs are in flight", self)
        raise PayloadIDExhaustionError(f"All {PAYLOAD_ID_MODULO} payload-IDs are in flight")

    def release(self, payload_id: int) -> None:
        """
        Marks the payload-ID as no longer in flight. Releasing an ID that is not active is not an error.
        """
        if self._track_active:
            self._active.discard(payload_id)

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes(self, last=self._last, active=len(self._active))


def _unittest_payload_id_wraparound() -> None:
    a = PayloadIDAllocator()
    ids = [a.allocate() for _ in range(PAYLOAD_ID_MODULO + 2)]
    assert ids[:2] == [1, 2]
    assert ids[253] == 254
    assert ids[254:] == [0, 1, 2]
    assert 255 not in ids
    assert a.active == frozenset()


def _unittest_payload_id_tracking(caplog: typing.Any) -> None:
    from pytest import raises

    a = PayloadIDAllocator(track_active=True)
    ids = [a.allocate() for _ in range(PAYLOAD_ID_MODULO)]
    assert sorted(ids) == list(range(PAYLOAD_ID_MODULO))
    assert len(a.active) == PAYLOAD_ID_MODULO

    with caplog.at_level(logging.WARNING, logger=__name__):
        with raises(PayloadIDExhaustionError):
            a.allocate()
    assert "in flight" in caplog.text

    a.release(100)
    a.release(100)  # Idempotency
    assert a.allocate() == 100

    a.release(7)
    a.release(9)
    assert a.allocate() == 7  # The counter continues from the last allocated ID, skipping the busy ones.
    assert a.allocate() == 9
    with raises(PayloadIDExhaustionError):
        a.allocate()
