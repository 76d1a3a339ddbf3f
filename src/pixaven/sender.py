"""The contract between :class:`RequestBuilder` and whatever performs I/O.

A sender receives a fully assembled :class:`RequestOptions` and a
completion callback, and must invoke that callback exactly once:

* ``JSON``   -- ``callback(err, response)``
* ``FILE``   -- ``callback(err, meta)``
* ``BUFFER`` -- ``callback(err, meta, data)``

Before doing any network work a sender must call
:func:`deliver_deferred_error`; when it returns ``True`` the callback has
already been answered and the sender must stop.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pixaven.errors import PixavenValidationError
from pixaven.models import RequestOptions, ResponseMode

Callback = Callable[..., Any]


@runtime_checkable
class RequestSender(Protocol):
    """Anything that can carry a :class:`RequestOptions` to the API."""

    def send(self, options: RequestOptions, callback: Callback) -> Any:
        """Start the request and return immediately.

        The return value is an optional completion handle (the default
        transport returns a :class:`concurrent.futures.Future`).
        """
        ...


def failure_args(mode: ResponseMode, err: Exception) -> tuple[Any, ...]:
    """Callback arguments reporting *err* for a chain dispatched in *mode*."""
    if mode is ResponseMode.BUFFER:
        return (err, None, None)
    return (err, None)


def deliver_deferred_error(options: RequestOptions, callback: Callback) -> bool:
    """Answer *callback* with the chain's recorded error, if there is one."""
    if not options.error_message:
        return False
    err = PixavenValidationError(
        options.error_message,
        context={"response_mode": options.response_mode.value},
    )
    callback(*failure_args(options.response_mode, err))
    return True
