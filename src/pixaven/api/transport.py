"""Default :class:`~pixaven.sender.RequestSender` built on ``httpx``.

:meth:`PixavenTransport.send` returns straight away with a
:class:`concurrent.futures.Future`; the request itself runs on a worker
thread and finishes by invoking the chain's callback there.  Each request
goes through this lifecycle:

1. Answer immediately, without I/O, if the chain carries a deferred error.
2. Read the upload source (path or stream) into memory once.
3. Acquire a token-bucket slot (wait if needed).
4. ``POST`` to ``/upload`` (multipart) or ``/fetch`` (JSON).
5. On ``2xx`` -- build the callback arguments for the response mode.
6. On ``408`` / ``5xx`` / timeout / dropped connection -- back off and retry.
7. On ``429`` -- pause the shared bucket for ``Retry-After`` and retry.
8. On other ``4xx`` -- fail with the matching typed error.
9. On max attempts exceeded -- fail with :class:`PixavenRetryExhaustedError`.

Failures never escape the worker; they reach the callback as ``err``.
Other ``httpx`` errors become :class:`PixavenNetworkError`, I/O errors on
borrowed streams become :class:`PixavenFileError`, and anything else is
logged and passed to the callback as raised.
"""

from __future__ import annotations

import json as _json
import os
import sys
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import httpx

from pixaven.config import PixavenConfig
from pixaven.errors import (
    PixavenAPIError,
    PixavenAuthError,
    PixavenError,
    PixavenFileError,
    PixavenNetworkError,
    PixavenNotFoundError,
    PixavenPayloadTooLargeError,
    PixavenPermissionError,
    PixavenRetryExhaustedError,
    PixavenValidationError,
)
from pixaven.models import InputMode, RequestOptions, ResponseMode
from pixaven.observability import chain_fields, get_logger, resolve_metrics
from pixaven.observability.metrics import (
    FAILURES_TOTAL,
    RATE_LIMIT_WAIT_MS,
    RATE_LIMITED_TOTAL,
    REQUEST_DURATION_MS,
    REQUESTS_TOTAL,
    RETRIES_TOTAL,
)
from pixaven.sender import Callback, deliver_deferred_error, failure_args

from .rate_limit import TokenBucket
from .retries import (
    RETRYABLE_EXCEPTIONS,
    RETRYABLE_STATUSES,
    compute_backoff,
    retry_reason,
    should_retry,
)

log = get_logger("pixaven.transport")

META_HEADER = "x-pixaven-meta"
USER_AGENT = "pixaven-python"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    """Extract the ``Retry-After`` header value as a float, or ``None``."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _parse_meta(response: httpx.Response) -> dict[str, Any]:
    """Decode the JSON metadata header sent with binary responses."""
    raw = response.headers.get(META_HEADER)
    if not raw:
        return {}
    try:
        meta = _json.loads(raw)
    except ValueError:
        log.warning(
            "Malformed metadata header",
            extra={"extra_fields": {"op": "parse_meta", "header": raw[:200]}},
        )
        return {}
    return meta if isinstance(meta, dict) else {}


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _raise_for_status(response: httpx.Response, path: str) -> None:
    """Raise the :class:`PixavenError` subclass for a non-retryable 4xx."""
    status = response.status_code
    body = _error_body(response)
    api_message = body.get("message") or response.text[:500]
    ctx: dict[str, Any] = {"status_code": status, "path": path}

    if status == 401:
        raise PixavenAuthError(
            message=f"Authentication failed on {path}: {api_message}",
            context=ctx,
        )
    if status == 403:
        raise PixavenPermissionError(
            message=f"Permission denied on {path}: {api_message}",
            context={**ctx, "operation": f"POST {path}"},
        )
    if status == 404:
        raise PixavenNotFoundError(
            message=f"Resource not found on {path}: {api_message}",
            context=ctx,
        )
    if status == 413:
        raise PixavenPayloadTooLargeError(
            message=f"Payload too large on {path}: {api_message}",
            context=ctx,
        )
    raise PixavenValidationError(
        message=f"Client error {status} on {path}: {api_message}",
        context={**ctx, "body": body},
    )


def _read_source(options: RequestOptions) -> tuple[str, bytes]:
    """Return ``(filename, content)`` for an upload request.

    Raises
    ------
    PixavenFileError
        If the path cannot be opened or the stream cannot be read.
    """
    source = options.file
    if isinstance(source, (str, os.PathLike)):
        path = os.fspath(source)
        try:
            with open(path, "rb") as fh:
                return os.path.basename(path), fh.read()
        except OSError as exc:
            raise PixavenFileError(
                message=f"Cannot read upload source {path}: {exc}",
                context={"path": path},
                cause=exc,
            ) from exc

    name = os.path.basename(str(getattr(source, "name", "") or "file"))
    try:
        content = source.read()
    except (OSError, ValueError) as exc:
        # ValueError: the borrowed stream was closed before the worker ran.
        raise PixavenFileError(
            message=f"Cannot read upload stream {type(source).__name__}: {exc}",
            context={"stream": type(source).__name__},
            cause=exc,
        ) from exc
    if isinstance(content, str):
        content = content.encode("utf-8")
    return name, content


def _write_chunks(response: httpx.Response, sink: Any, target: str) -> int:
    written = 0
    chunks = response.iter_bytes()
    while True:
        try:
            chunk = next(chunks, None)
        except httpx.HTTPError as exc:
            raise PixavenNetworkError(
                message=f"Download interrupted after {written} bytes: {exc}",
                context={"bytes_written": written, "destination": target},
                cause=exc,
            ) from exc
        if chunk is None:
            return written
        try:
            sink.write(chunk)
        except (OSError, ValueError) as exc:
            raise PixavenFileError(
                message=f"Cannot write output to {target}: {exc}",
                context={"bytes_written": written, "destination": target},
                cause=exc,
            ) from exc
        written += len(chunk)


def _write_output(response: httpx.Response, destination: Any) -> int:
    """Stream *response* into *destination*; return the bytes written.

    Raises
    ------
    PixavenNetworkError
        If the body cannot be read to the end.
    PixavenFileError
        If the destination cannot be opened or written.
    """
    if isinstance(destination, (str, os.PathLike)):
        path = os.fspath(destination)
        try:
            fh = open(path, "wb")
        except OSError as exc:
            raise PixavenFileError(
                message=f"Cannot write output file {path}: {exc}",
                context={"destination": path},
                cause=exc,
            ) from exc
        with fh:
            return _write_chunks(response, fh, path)

    target = type(destination).__name__
    written = _write_chunks(response, destination, target)
    flush = getattr(destination, "flush", None)
    if callable(flush):
        try:
            flush()
        except (OSError, ValueError) as exc:
            raise PixavenFileError(
                message=f"Cannot flush output stream {target}: {exc}",
                context={"bytes_written": written, "destination": target},
                cause=exc,
            ) from exc
    return written


def _dump_payload(
    path: str,
    payload: dict | None,
    response_status: int | None,
    response_body: Any | None,
    api_key: str | None = None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    from pixaven.utils.redact import redact

    dump: dict[str, Any] = {"method": "POST", "path": path}
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(
        _json.dumps(redact(dump, api_key), indent=2, default=str),
        file=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class PixavenTransport:
    """Thread-pool backed HTTP sender with auth, retry and rate limiting.

    Parameters
    ----------
    config:
        A :class:`PixavenConfig` controlling all transport behaviour.
    http_transport:
        Optional ``httpx`` transport, e.g. :class:`httpx.MockTransport` in
        tests.  Used for the shared client and for per-request proxy clients.
    """

    def __init__(
        self,
        config: PixavenConfig,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._http_transport = http_transport
        self._bucket = TokenBucket(
            rate_rps=config.rate_limit_rps,
            burst=10,
        )
        self._metrics = resolve_metrics(config.metrics)
        self._client = self._make_client(config.http_proxy)
        self._executor = ThreadPoolExecutor(
            max_workers=config.max_workers,
            thread_name_prefix="pixaven",
        )

    def _make_client(self, proxy: str | None) -> httpx.Client:
        return httpx.Client(
            base_url=self._config.base_url,
            auth=(self._config.api_key, ""),
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(self._config.timeout_seconds),
            proxy=proxy,
            transport=self._http_transport,
        )

    # -- RequestSender -----------------------------------------------------

    def send(self, options: RequestOptions, callback: Callback) -> Future | None:
        """Dispatch *options* and invoke *callback* when done.

        Returns ``None`` if the chain carried a deferred error (the callback
        has then already run), otherwise a :class:`Future` that resolves
        once the callback has returned.
        """
        if deliver_deferred_error(options, callback):
            return None
        return self._executor.submit(self._run, options, callback)

    def _run(self, options: RequestOptions, callback: Callback) -> None:
        mode = options.response_mode
        try:
            args = self.perform(options)
        except PixavenError as exc:
            log.warning(
                "Request failed",
                extra={
                    "extra_fields": chain_fields(
                        options, op="send", code=exc.code.value, error=exc.message,
                    )
                },
            )
            self._metrics.increment(
                FAILURES_TOTAL, tags={"mode": mode.value, "code": exc.code.value},
            )
            args = failure_args(mode, exc)
        except Exception as exc:
            # Unexpected failure; the callback is still owed an answer.
            log.error(
                "Request failed unexpectedly",
                exc_info=exc,
                extra={"extra_fields": chain_fields(options, op="send", error=repr(exc))},
            )
            self._metrics.increment(
                FAILURES_TOTAL, tags={"mode": mode.value, "code": type(exc).__name__},
            )
            args = failure_args(mode, exc)
        callback(*args)

    # -- request execution -------------------------------------------------

    def perform(self, options: RequestOptions) -> tuple[Any, ...]:
        """Execute *options* on the calling thread.

        Returns the success arguments for the chain's callback, e.g.
        ``(None, response)`` for JSON mode.

        Raises
        ------
        PixavenError
            Any failure, already typed.
        """
        path = options.endpoint
        kwargs: dict[str, Any]
        if options.input_mode is InputMode.UPLOAD:
            name, content = _read_source(options)
            kwargs = {
                "files": {"file": (name, content)},
                "data": {"data": _json.dumps(options.request)},
            }
        else:
            kwargs = {"json": options.request}

        client = self._client
        if options.proxy:
            client = self._make_client(options.proxy)
        try:
            return self._perform_with(client, path, options, kwargs)
        finally:
            if client is not self._client:
                client.close()

    def _perform_with(
        self,
        client: httpx.Client,
        path: str,
        options: RequestOptions,
        kwargs: dict[str, Any],
    ) -> tuple[Any, ...]:
        mode = options.response_mode
        response = self._request(
            client, path, stream=mode is ResponseMode.FILE,
            payload=options.request, **kwargs,
        )

        if mode is ResponseMode.FILE:
            try:
                meta = _parse_meta(response)
                _write_output(response, options.output_file)
            finally:
                response.close()
            return (None, meta)

        if mode is ResponseMode.BUFFER:
            return (None, _parse_meta(response), response.content)

        body = _error_body(response)
        if body.get("success") is False:
            raise PixavenAPIError(
                message=body.get("message") or f"Request to {path} was not successful",
                context={"status_code": response.status_code, "body": body},
            )
        return (None, body)

    def _request(
        self,
        client: httpx.Client,
        path: str,
        *,
        stream: bool = False,
        payload: dict | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one ``POST`` with retries; return the successful response.

        With *stream* the returned response body has not been read and the
        caller must close it.
        """
        max_attempts = self._config.retry_max_attempts
        last_exception: Exception | None = None
        last_status: int | None = None

        for attempt in range(max_attempts):
            # 1. Rate-limit pacing
            wait = self._bucket.acquire()
            if wait > 0:
                self._metrics.timing(
                    RATE_LIMIT_WAIT_MS,
                    wait * 1000,
                    tags={"path": path},
                )

            # 2. Send request
            t0 = time.monotonic()
            try:
                request = client.build_request("POST", path, **kwargs)
                response = client.send(request, stream=stream)
                elapsed_ms = (time.monotonic() - t0) * 1000
            except RETRYABLE_EXCEPTIONS as exc:
                last_exception = exc
                last_status = None
                time.sleep(self._handle_network_exception(path, exc, attempt))
                continue
            except httpx.HTTPError as exc:
                self._metrics.increment(REQUESTS_TOTAL, tags={"path": path, "status": "error"})
                raise PixavenNetworkError(
                    message=f"HTTP error on POST {path}: {exc}",
                    context={"url": path, "attempt": attempt + 1, "error_type": type(exc).__name__},
                    cause=exc,
                ) from exc

            # 3. Process response
            last_status = response.status_code
            last_exception = None
            tags = {"path": path, "status": str(response.status_code)}
            self._metrics.increment(REQUESTS_TOTAL, tags=tags)
            self._metrics.timing(REQUEST_DURATION_MS, elapsed_ms, tags=tags)

            if 200 <= response.status_code < 300:
                if self._config.debug_dump_payload:
                    body = None if stream else self._debug_body(response)
                    _dump_payload(path, payload, response.status_code, body, self._config.api_key)
                return response

            # Error bodies are small; read them so they can be reported.
            if stream:
                response.read()
                response.close()
            if self._config.debug_dump_payload:
                _dump_payload(
                    path, payload, response.status_code,
                    self._debug_body(response), self._config.api_key,
                )

            if response.status_code not in RETRYABLE_STATUSES:
                _raise_for_status(response, path)

            if not should_retry(response.status_code, None, attempt, max_attempts):
                break

            retry_after: float | None = None
            reason = retry_reason(response.status_code)
            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                self._metrics.increment(RATE_LIMITED_TOTAL, tags={"path": path})
                log.warning(
                    "Rate limited by Pixaven API",
                    extra={
                        "extra_fields": {
                            "op": "request",
                            "path": path,
                            "status_code": 429,
                            "retry_after": retry_after,
                            "attempt": attempt + 1,
                        }
                    },
                )

            self._metrics.increment(
                RETRIES_TOTAL,
                tags={"path": path, "reason": reason},
            )
            if retry_after is not None:
                # The next acquire() waits it out, along with every other worker.
                self._bucket.pause(retry_after)
                continue
            time.sleep(compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
            ))

        # 4. All attempts exhausted.
        ctx: dict[str, Any] = {
            "attempts": max_attempts,
            "last_status_code": last_status,
        }
        if last_exception is not None:
            raise PixavenRetryExhaustedError(
                message=(
                    f"All {max_attempts} attempts exhausted for POST {path} "
                    f"(last error: {last_exception})"
                ),
                context=ctx,
                cause=last_exception,
            )
        raise PixavenRetryExhaustedError(
            message=(
                f"All {max_attempts} attempts exhausted for POST {path} "
                f"(last status: {last_status})"
            ),
            context=ctx,
        )

    def _handle_network_exception(self, path: str, exc: Exception, attempt: int) -> float:
        """Return the backoff delay, or raise once retries are exhausted."""
        max_attempts = self._config.retry_max_attempts
        self._metrics.increment(
            REQUESTS_TOTAL,
            tags={"path": path, "status": "error"},
        )
        log.warning(
            "Request network error",
            extra={
                "extra_fields": {
                    "op": "request",
                    "path": path,
                    "attempt": attempt + 1,
                    "error": str(exc),
                }
            },
        )
        if should_retry(None, exc, attempt, max_attempts):
            self._metrics.increment(
                RETRIES_TOTAL,
                tags={"path": path, "reason": retry_reason(None, exc)},
            )
            return compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
            )
        raise PixavenNetworkError(
            message=f"Network error on POST {path}: {exc}",
            context={"url": path, "attempt": attempt + 1},
            cause=exc,
        ) from exc

    @staticmethod
    def _debug_body(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            return _error_body(response)
        if content_type.startswith("text/"):
            return response.text[:1000]
        return response.content

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Wait for in-flight requests, then release the HTTP client."""
        self._executor.shutdown(wait=True)
        self._client.close()

    def __enter__(self) -> PixavenTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
