"""Retry decisions and backoff for Pixaven API requests.

* :func:`should_retry` -- decide whether a failed attempt is retried.
* :func:`retry_reason` -- classify a failed attempt for metrics and logs.
* :func:`compute_backoff` -- the delay before the next attempt.

Both Pixaven endpoints are safe to repeat: an upload body is read into
memory once and re-sent unchanged, and ``/fetch`` only names a source URL.
A server-sent ``Retry-After`` is not handled here; the transport pauses its
shared :class:`~pixaven.api.rate_limit.TokenBucket` instead, so that every
worker waits, not just the one that was told to.
"""

from __future__ import annotations

import random

import httpx

# 413 is final (the image will not shrink); 408 is the API timing out on a
# slow source URL and usually succeeds on a second try.
RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Failures where the request may never have been processed.  A dropped
# keep-alive connection shows up as ``RemoteProtocolError`` rather than a
# ``NetworkError``.
RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def should_retry(
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
) -> bool:
    """Decide whether a request should be retried.

    Parameters
    ----------
    status_code:
        HTTP status code from the response, or ``None`` if no response was
        received.
    exception:
        The exception that was raised, or ``None`` if a response was received.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts allowed (including the initial request).
    """
    if attempt + 1 >= max_attempts:
        return False

    if exception is not None:
        return isinstance(exception, RETRYABLE_EXCEPTIONS)

    if status_code is not None:
        return status_code in RETRYABLE_STATUSES

    return False


def retry_reason(status_code: int | None, exception: Exception | None = None) -> str:
    """Return the ``reason`` tag for a failed attempt.

    One of ``"rate_limited"``, ``"timeout"``, ``"network_error"`` or
    ``"server_error"``.
    """
    if exception is not None:
        if isinstance(exception, httpx.TimeoutException):
            return "timeout"
        return "network_error"
    if status_code == 429:
        return "rate_limited"
    if status_code == 408:
        return "timeout"
    return "server_error"


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 30.0,
    jitter: bool = True,
) -> float:
    """Compute the delay before the next retry attempt.

    The delay is ``base * 2^attempt`` capped at *maximum*.  With *jitter*
    the result is scaled to a random 50-100 % of its value so that workers
    failing together do not retry together.
    """
    delay = min(base * (2 ** attempt), maximum)
    if jitter:
        delay *= 0.5 + random.random() * 0.5
    return delay
