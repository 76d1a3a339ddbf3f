"""Token-bucket rate limiter for client-side pacing.

Requests dispatched from many chains run concurrently on the transport's
worker pool; they all draw from one :class:`TokenBucket` so the client as a
whole stays under ``PixavenConfig.rate_limit_rps``.  The API's own limit is
per key, so when it answers ``429`` with ``Retry-After`` the transport calls
:meth:`TokenBucket.pause` and every worker holds back, not just the one that
was rejected.
"""

from __future__ import annotations

import threading
import time


class TokenBucket:
    """Thread-safe token bucket with server-directed pauses.

    Waiting callers reserve their tokens before sleeping, so a burst of
    workers is served in arrival order instead of all waking at once.

    Parameters
    ----------
    rate_rps:
        Sustained token-refill rate in tokens per second.
    burst:
        Maximum number of tokens the bucket can hold.
    """

    __slots__ = ("_lock", "burst", "last_refill", "rate", "tokens")

    def __init__(self, rate_rps: float, burst: int = 10) -> None:
        if rate_rps <= 0:
            raise ValueError(f"rate_rps must be > 0, got {rate_rps}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")

        self.rate: float = rate_rps
        self.burst: int = burst
        self.tokens: float = float(burst)
        # May lie in the future: reserved by waiting callers or a pause.
        self.last_refill: float = time.monotonic()
        self._lock = threading.Lock()

    def acquire(self, tokens: int = 1) -> float:
        """Acquire *tokens* from the bucket, blocking if necessary.

        Returns the number of seconds the caller had to wait (``0.0`` if
        tokens were immediately available).
        """
        with self._lock:
            now = time.monotonic()
            start = max(now, self.last_refill)
            self.tokens = min(self.burst, self.tokens + (start - self.last_refill) * self.rate)
            self.last_refill = start

            if self.tokens >= tokens:
                self.tokens -= tokens
                wait = start - now
            else:
                wait = start - now + (tokens - self.tokens) / self.rate
                self.tokens = 0.0
                self.last_refill = now + wait

        # Sleep outside the lock so other workers can queue behind us.
        if wait > 0:
            time.sleep(wait)
        return wait

    def pause(self, seconds: float) -> None:
        """Empty the bucket and hold every caller back for *seconds*."""
        if seconds <= 0:
            return
        with self._lock:
            self.tokens = 0.0
            self.last_refill = max(self.last_refill, time.monotonic() + seconds)
