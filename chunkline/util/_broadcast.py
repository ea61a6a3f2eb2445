# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

import typing
import logging

R = typing.TypeVar("R")

_logger = logging.getLogger(__name__)


def broadcast(
    functions: typing.Iterable[typing.Callable[..., R]]
) -> typing.Callable[..., typing.List[typing.Union[R, Exception]]]:
    """
    Returns a function that invokes each supplied function in series with the same arguments.
    The result of each call is collected into the output list.
    If a function raises an exception, the exception is logged and stored in the output list in place of the result,
    and the remaining functions are still invoked.

    This is how reception handlers and payload subscribers are invoked: one faulty handler shall not
    prevent the others from seeing the data.

    >>> _logger.setLevel(100)  # Suppress error reports from the following doctest.
    >>> def length(message, sender):
    ...     return len(message)
    >>> def reject(message, sender):
    ...     raise ValueError(f'Rejected {message!r} from {sender}')
    >>> broadcast([length, reject])('AQIDBA==', sender='COM9')
    [8, ValueError("Rejected 'AQIDBA==' from COM9")]
    >>> broadcast([])('AQIDBA==', None)
    []
    >>> _logger.setLevel(logging.NOTSET)
    """

    def delegate(*args: typing.Any, **kwargs: typing.Any) -> typing.List[typing.Union[R, Exception]]:
        out: typing.List[typing.Union[R, Exception]] = []
        for fn in functions:
            try:
                r: typing.Union[R, Exception] = fn(*args, **kwargs)
            except Exception as ex:
                r = ex
                _logger.exception("Unhandled exception in %s: %s", fn, ex)
            out.append(r)
        return out

    return delegate
