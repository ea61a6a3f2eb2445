# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
Application layer
+++++++++++++++++

This module puts the protocol together with a transport into an :class:`Endpoint`, which sends payloads
under a topic and dispatches the received ones to the handlers subscribed to that topic.

The simplest way to get an endpoint is :func:`make_endpoint`, which reads its settings from
the environment variables (see :class:`Config`)::

    $ export CHUNKLINE__SERIAL__PORT=/dev/ttyACM0
    $ export CHUNKLINE__SEND__INTERVAL=0.05

The same objects can also be constructed manually for finer control:
:class:`Sender` alone is enough for a send-only application,
and :class:`Receiver` with a :class:`Dispatcher` for a receive-only one.
"""

from ._config import Config as Config
from ._config import ValueConversionError as ValueConversionError
from ._config import environment_variable_name as environment_variable_name

from ._dispatcher import Dispatcher as Dispatcher
from ._dispatcher import PayloadHandler as PayloadHandler

from ._sender import Sender as Sender

from ._receiver import Receiver as Receiver
from ._receiver import ReceivedPayload as ReceivedPayload

from ._transport_factory import make_transport as make_transport

from ._endpoint import Endpoint as Endpoint
from ._endpoint import make_endpoint as make_endpoint
