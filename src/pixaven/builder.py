"""Fluent request builder.

A :class:`RequestBuilder` collects one request's options through a chain
of calls and hands them to a :class:`~pixaven.sender.RequestSender` on the
terminal call::

    client.upload("photo.jpg").resize({"width": 800}).to_json(on_done)

Chain rules:

* Exactly one input method: :meth:`~RequestBuilder.upload` or
  :meth:`~RequestBuilder.fetch`.
* Exactly one terminal call: :meth:`~RequestBuilder.to_json`,
  :meth:`~RequestBuilder.to_file` or :meth:`~RequestBuilder.to_buffer`.
* Binary terminals cannot be combined with ``webhook`` or ``store``.

Breaking a rule never raises mid-chain.  The first violation is recorded
on the options and handed to the completion callback when the chain is
dispatched, and the sender is not called.  The only synchronous failure is
a binary terminal call without a callable callback, since nothing could
ever receive a deferred error.

Callbacks can run on different threads depending on the outcome.
A deferred error is delivered on the thread that made the terminal call,
before it returns; a dispatched request is answered on whatever thread the
sender completes it, a worker thread for :class:`~pixaven.PixavenTransport`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pixaven.errors import PixavenCallbackError, PixavenValidationError
from pixaven.models import (
    FileDestination,
    FileSource,
    InputMode,
    RequestOptions,
    ResponseMode,
)
from pixaven.observability import MetricsHook, chain_fields, get_logger, resolve_metrics
from pixaven.observability.metrics import DEFERRED_ERRORS_TOTAL, DISPATCH_TOTAL
from pixaven.sender import Callback, RequestSender, deliver_deferred_error, failure_args

log = get_logger("pixaven.builder")

UPLOAD_ARGUMENT_ERROR = (
    "Pixaven upload(string|stream) method requires a valid file path "
    "or a stream passed as an argument"
)
FETCH_ARGUMENT_ERROR = (
    "Pixaven fetch(string) method requires a valid file URL passed as an argument"
)
ONE_INPUT_ERROR = (
    "Pixaven only accepts one file input method per call: "
    "upload(string|stream) or fetch(string)"
)
ONE_RESPONSE_ERROR = (
    "Pixaven only accepts one response method per call: "
    "to_json(fn), to_file(string|stream, fn) or to_buffer(fn)"
)
NO_INPUT_ERROR = (
    "No file input has been specified: upload(string|stream) or fetch(string)"
)
JSON_CALLBACK_ERROR = "Pixaven to_json(fn) method requires a callback function"
FILE_CALLBACK_ERROR = (
    "Pixaven to_file(string|stream, fn) method requires a callback function "
    "as a second parameter"
)
FILE_DESTINATION_ERROR = (
    "Pixaven to_file(string|stream, fn) method requires a file path "
    "or a stream as a first parameter"
)
BUFFER_CALLBACK_ERROR = "Pixaven to_buffer(fn) method requires a callback function"

_BINARY_WEBHOOK_ERROR = (
    "Binary responses with {call} method are not supported when using Webhooks"
)
_BINARY_STORE_ERROR = (
    "Binary responses with {call} method are not supported when using External Storage"
)


def _is_file_source(value: Any) -> bool:
    return isinstance(value, (str, os.PathLike)) or callable(getattr(value, "read", None))


def _is_file_destination(value: Any) -> bool:
    return isinstance(value, (str, os.PathLike)) or callable(getattr(value, "write", None))


class RequestBuilder:
    """Accumulates one request and dispatches it exactly once.

    Builders are cheap, single-use and not thread-safe; start a new one per
    request (see :meth:`pixaven.Pixaven.upload` / :meth:`~pixaven.Pixaven.fetch`).

    Parameters
    ----------
    sender:
        The collaborator that performs the request.
    metrics:
        Optional metrics backend; defaults to :class:`~pixaven.observability.NoopMetricsHook`.
    """

    def __init__(self, sender: RequestSender, metrics: MetricsHook | None = None) -> None:
        self._sender = sender
        self._metrics = resolve_metrics(metrics)
        self.options = RequestOptions()
        self._handle: Any = None

    def __repr__(self) -> str:
        o = self.options
        return (
            f"RequestBuilder(input_mode={o.input_mode.value!r}, "
            f"operations={sorted(o.request)!r}, "
            f"response_mode={o.response_mode.value!r}, "
            f"error={o.error_message!r})"
        )

    # ------------------------------------------------------------------
    # Input selection
    # ------------------------------------------------------------------

    def upload(self, file: FileSource) -> RequestBuilder:
        """Upload a local image, given as a path or a readable binary stream.

        The stream is borrowed: it is read by the sender but never closed.
        """
        if not _is_file_source(file):
            self._fail(UPLOAD_ARGUMENT_ERROR, "upload")
        if self.options.input_mode is not InputMode.NONE:
            self._fail(ONE_INPUT_ERROR, "upload")
            return self

        self.options.file = file
        self.options.input_mode = InputMode.UPLOAD
        return self

    def fetch(self, url: str) -> RequestBuilder:
        """Have the API download the image from *url*."""
        if not isinstance(url, str) or not url:
            self._fail(FETCH_ARGUMENT_ERROR, "fetch")
        if self.options.input_mode is not InputMode.NONE:
            self._fail(ONE_INPUT_ERROR, "fetch")
            return self

        self.options.request["url"] = url
        self.options.input_mode = InputMode.FETCH
        return self

    def proxy(self, proxy: str) -> RequestBuilder:
        """Route this request through *proxy*.  Non-strings are ignored."""
        if isinstance(proxy, str):
            self.options.proxy = proxy
        return self

    # ------------------------------------------------------------------
    # Operations
    #
    # Each takes the operation's parameters as a mapping, stored as-is.
    # Anything else is ignored.  Calling one twice keeps the last value.
    # ------------------------------------------------------------------

    def _operation(self, name: str, data: Any) -> RequestBuilder:
        if isinstance(data, Mapping):
            self.options.request[name] = data
        return self

    def resize(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Resize the image."""
        return self._operation("resize", data)

    def scale(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Scale the image by a ratio."""
        return self._operation("scale", data)

    def crop(self, data: Mapping[str, Any]) -> RequestBuilder:
        return self._operation("crop", data)

    def watermark(self, data: Mapping[str, Any]) -> RequestBuilder:
        return self._operation("watermark", data)

    def mask(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Apply an elliptical mask."""
        return self._operation("mask", data)

    def stylize(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Apply a filter."""
        return self._operation("stylize", data)

    def adjust(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Adjust visual parameters such as brightness or contrast."""
        return self._operation("adjust", data)

    def auto(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Automatically enhance the image."""
        return self._operation("auto", data)

    def border(self, data: Mapping[str, Any]) -> RequestBuilder:
        return self._operation("border", data)

    def padding(self, data: Mapping[str, Any]) -> RequestBuilder:
        return self._operation("padding", data)

    def store(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Store the result in external storage.  Excludes binary responses."""
        return self._operation("store", data)

    def output(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Set output format and encoding."""
        return self._operation("output", data)

    def webhook(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Deliver the response to a webhook.  Excludes binary responses."""
        return self._operation("webhook", data)

    def cdn(self, data: Mapping[str, Any]) -> RequestBuilder:
        """Control CDN caching of the result."""
        return self._operation("cdn", data)

    # ------------------------------------------------------------------
    # Terminal calls
    # ------------------------------------------------------------------

    def to_json(self, callback: Callback) -> RequestBuilder:
        """Send the request and receive the API's JSON response.

        *callback* is invoked as ``callback(err, response)``.  A non-callable
        *callback* is recorded as a deferred error; the outcome is then only
        visible in the logs.

        A chain rejected before dispatch is answered synchronously, on the
        calling thread, before this method returns.  Otherwise the sender
        decides where the callback runs; the default transport invokes it on
        one of its worker threads.
        """
        def forward(err: Exception | None, response: Any = None) -> None:
            _invoke(callback, "to_json", err, response)

        problems = [] if callable(callback) else [JSON_CALLBACK_ERROR]
        return self._dispatch(ResponseMode.JSON, forward, problems)

    def to_file(self, destination: FileDestination, callback: Callback) -> RequestBuilder:
        """Send the request and stream the binary result into *destination*.

        *destination* is a path or a writable binary stream; a stream is
        borrowed and left open.  *callback* is invoked as
        ``callback(err, meta)``.

        As with :meth:`to_json`, a rejected chain answers *callback* on the
        calling thread, while a dispatched one is answered wherever the
        sender completes it (a worker thread for the default transport).

        Raises
        ------
        PixavenCallbackError
            If *callback* is not callable.
        """
        if not callable(callback):
            raise PixavenCallbackError(FILE_CALLBACK_ERROR)

        def forward(err: Exception | None, meta: Any = None) -> None:
            callback(err, meta)

        problems = [] if _is_file_destination(destination) else [FILE_DESTINATION_ERROR]
        return self._dispatch(
            ResponseMode.FILE, forward, problems,
            call="to_file(string|stream, fn)", destination=destination,
        )

    def to_buffer(self, callback: Callback) -> RequestBuilder:
        """Send the request and receive the binary result in memory.

        *callback* is invoked as ``callback(err, meta, data)``.
        Threading is as for :meth:`to_json`: synchronous for a rejected
        chain, a worker thread for a request run by the default transport.

        Raises
        ------
        PixavenCallbackError
            If *callback* is not callable.
        """
        if not callable(callback):
            raise PixavenCallbackError(BUFFER_CALLBACK_ERROR)

        def forward(err: Exception | None, meta: Any = None, data: bytes | None = None) -> None:
            callback(err, meta, data)

        return self._dispatch(ResponseMode.BUFFER, forward, [], call="to_buffer(fn)")

    def wait(self, timeout: float | None = None) -> None:
        """Block until the dispatched request's callback has run.

        Only meaningful with senders that return a future-like handle, such
        as the default transport.  Exceptions raised by the callback itself
        are re-raised here.
        """
        result = getattr(self._handle, "result", None)
        if result is not None:
            result(timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fail(self, message: str, op: str) -> None:
        if self.options.fail(message):
            log.debug(
                "Recorded deferred error",
                extra={"extra_fields": {"op": op, "error": message}},
            )

    def _dispatch(
        self,
        mode: ResponseMode,
        forward: Callback,
        problems: list[str],
        *,
        call: str | None = None,
        destination: FileDestination | None = None,
    ) -> RequestBuilder:
        op = f"to_{mode.value}"
        options = self.options

        # A chain is dispatched once; the options now belong to the sender.
        if options.response_mode is not ResponseMode.NONE:
            log.warning(
                "Builder already dispatched",
                extra={"extra_fields": {"op": op, "first_mode": options.response_mode.value}},
            )
            forward(*failure_args(mode, PixavenValidationError(ONE_RESPONSE_ERROR)))
            return self

        for message in problems:
            self._fail(message, op)
        if options.input_mode is InputMode.NONE:
            self._fail(NO_INPUT_ERROR, op)
        if mode.is_binary:
            if "webhook" in options.request:
                self._fail(_BINARY_WEBHOOK_ERROR.format(call=call), op)
            if "store" in options.request:
                self._fail(_BINARY_STORE_ERROR.format(call=call), op)
            options.request["response"] = {"mode": "binary"}
            options.output_file = destination

        options.response_mode = mode

        tags = {"mode": mode.value}
        if deliver_deferred_error(options, forward):
            self._metrics.increment(DEFERRED_ERRORS_TOTAL, tags=tags)
            log.debug(
                "Chain rejected before dispatch",
                extra={"extra_fields": {"op": op, "error": options.error_message}},
            )
            return self

        self._metrics.increment(DISPATCH_TOTAL, tags=tags)
        log.debug(
            "Dispatching request",
            extra={"extra_fields": chain_fields(options, op=op)},
        )
        self._handle = self._sender.send(options, forward)
        return self


def _invoke(callback: Any, op: str, *args: Any) -> None:
    if callable(callback):
        callback(*args)
        return
    err = args[0]
    log.warning(
        "Request finished but no callback was supplied",
        extra={"extra_fields": {"op": op, "error": str(err) if err else None}},
    )
