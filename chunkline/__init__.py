# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

r"""
Chunkline moves byte payloads of arbitrary size over channels that only accept short, rate-limited
text messages, such as remote console command invocations.

A payload is framed (format tag, topic, optionally deflated content), split into packets with a 5-byte
header, base64-encoded and sent one invocation at a time at a fixed rate.
The receiving side reassembles the packets by payload-ID and dispatches the payload by topic once complete.


Submodule import policy
+++++++++++++++++++++++

The following submodules are auto-imported when the root module ``chunkline`` is imported:

- :mod:`chunkline.util`
- :mod:`chunkline.transport`, but not concrete transport implementation submodules.
- :mod:`chunkline.protocol`
- :mod:`chunkline.application`


Log level override
++++++++++++++++++

The environment variable ``CHUNKLINE_LOGLEVEL`` can be set to one of the following values to override
the library log level:

- ``CRITICAL``
- ``FATAL``
- ``ERROR``
- ``WARNING``
- ``INFO``
- ``DEBUG``
"""

import os as _os


from ._version import __version__ as __version__

__version_info__ = tuple(map(int, __version__.split(".")[:3]))
__copyright__ = "Copyright (c) 2026 Chunkline developers"
__license__ = "MIT"


_log_level_from_env = _os.environ.get("CHUNKLINE_LOGLEVEL")
if _log_level_from_env is not None:
    import logging as _logging

    _logging.basicConfig(
        format="%(asctime)s %(process)5d %(levelname)-8s %(name)s: %(message)s", level=_log_level_from_env
    )
    _logging.getLogger(__name__).setLevel(_log_level_from_env)
    _logging.getLogger(__name__).info("Log config from env var; level: %r", _log_level_from_env)


# The sub-packages are imported in the order of their interdependency.
import chunkline.util as util  # pylint: disable=R0402,C0413  # noqa
import chunkline.transport as transport  # pylint: disable=R0402,C0413  # noqa
import chunkline.protocol as protocol  # pylint: disable=R0402,C0413  # noqa
import chunkline.application as application  # pylint: disable=R0402,C0413  # noqa
