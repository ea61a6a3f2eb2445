# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

from __future__ import annotations
import typing
import logging
import chunkline.util


PayloadHandler = typing.Callable[[typing.Any, bytes], None]
"""
Invoked with (sender identity, payload) once per received payload.
"""


_logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Notifies the application about received payloads.
    Every payload raises the event named after its topic, prefixed with the namespace:
    a payload with topic ``map`` raises ``received.map`` by default.
    Handlers subscribe per topic, so the application never deals with individual packets or payload-IDs.

    >>> d = Dispatcher()
    >>> unsubscribe = d.subscribe('map', lambda sender, payload: print(sender, payload))
    >>> d.dispatch('map', b'\\x01\\x02', 'COM9')
    COM9 b'\\x01\\x02'
    1
    >>> unsubscribe()
    >>> d.dispatch('map', b'', 'COM9')
    0
    """

    DEFAULT_NAMESPACE = "received"

    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._namespace = str(namespace)
        self._handlers: typing.Dict[str, typing.List[PayloadHandler]] = {}

    @property
    def namespace(self) -> str:
        return self._namespace

    def event_name(self, topic: str) -> str:
        """
        >>> Dispatcher('ndata.received').event_name('save')
        'ndata.received.save'
        """
        return f"{self._namespace}.{topic}"

    def subscribe(self, topic: str, handler: PayloadHandler) -> typing.Callable[[], None]:
        """
        :returns: A callable that removes the subscription. Invoking it more than once is not an error.
        """
        name = self.event_name(topic)
        self._handlers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(name, None)

        return unsubscribe

    def dispatch(self, topic: str, payload: bytes, sender: typing.Any) -> int:
        """
        Invokes every handler subscribed to the topic. A failing handler is logged and does not affect the others.

        :returns: The number of handlers invoked.
        """
        name = self.event_name(topic)
        handlers = list(self._handlers.get(name, []))
        _logger.info("%s: Emitting event %s: %d bytes from %r", self, name, len(payload), sender)
        if not handlers:
            _logger.debug("%s: Nobody is subscribed to %s", self, name)
        chunkline.util.broadcast(handlers)(sender, payload)
        return len(handlers)

    def __repr__(self) -> str:
        return chunkline.util.repr_attributes(self, namespace=repr(self._namespace), events=len(self._handlers))
