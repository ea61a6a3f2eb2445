# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.


def repr_attributes(obj: object, *anonymous_elements: object, **named_elements: object) -> str:
    """
    Constructs the :func:`repr` form of an object from the supplied elements; used by most classes of the library.
    String representations are obtained by invoking :func:`str` on each value.

    >>> class SendQueue: pass
    >>> repr_attributes(SendQueue())
    'SendQueue()'
    >>> repr_attributes(SendQueue(), 'loop://', interval=0.03)
    'SendQueue(loop://, interval=0.03)'
    """
    fld = list(map(str, anonymous_elements)) + list(f"{name}={value}" for name, value in named_elements.items())
    return f"{type(obj).__name__}(" + ", ".join(fld) + ")"


def repr_attributes_noexcept(obj: object, *anonymous_elements: object, **named_elements: object) -> str:
    """
    Same as :func:`repr_attributes` but never raises; useful in ``__repr__`` of objects that may be half-closed.

    >>> class Store: pass
    >>> class Broken:
    ...     def __str__(self) -> str:
    ...         raise RuntimeError('port is gone')
    >>> repr_attributes_noexcept(Store(), pending=Broken())
    "<REPR FAILED: RuntimeError('port is gone')>"
    """
    try:
        return repr_attributes(obj, *anonymous_elements, **named_elements)
    except Exception as ex:
        # noinspection PyBroadException
        try:
            return f"<REPR FAILED: {ex!r}>"
        except Exception:
            return "<REPR FAILED: UNKNOWN ERROR>"
