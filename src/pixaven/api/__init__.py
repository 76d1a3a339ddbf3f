"""pixaven.api -- HTTP transport for the Pixaven API.

* :mod:`.rate_limit` -- token bucket rate limiter.
* :mod:`.retries` -- retry decision logic and exponential backoff.
* :mod:`.transport` -- the default request sender.
"""

from __future__ import annotations

from .rate_limit import TokenBucket
from .retries import compute_backoff, should_retry
from .transport import PixavenTransport

__all__ = [
    "PixavenTransport",
    "TokenBucket",
    "compute_backoff",
    "should_retry",
]
