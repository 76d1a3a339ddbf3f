"""SDK configuration for pixaven.

:class:`PixavenConfig` is a plain dataclass that captures every tuneable
knob exposed by the SDK.  One instance is shared by a :class:`Pixaven`
client and the transport it owns; individual request chains never mutate
it.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pixaven.observability.metrics import MetricsHook

DEFAULT_BASE_URL = "https://api.pixaven.com/1.0"


@dataclass
class PixavenConfig:
    """Complete configuration for a pixaven client.

    Every parameter has a sensible default so that the only *required*
    value is ``api_key``.

    Parameters
    ----------
    api_key:
        Pixaven API key.  **Required.**  Never logged.
    base_url:
        API root URL.  Override for proxy or testing environments.
    retry_max_attempts:
        Total attempts per request (including the first) on 429, 5xx and
        network errors.
    retry_base_delay:
        Base delay in seconds for exponential backoff.
    retry_max_delay:
        Upper bound for a single backoff delay.
    retry_jitter:
        Randomly scale each backoff delay to 50-100 % of its value.
    rate_limit_rps:
        Client-side pacing in requests per second, shared by all chains
        dispatched through the same transport.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Default HTTP/HTTPS proxy URL.  A chain's ``proxy()`` call overrides
        it for that request only.
    max_workers:
        Size of the worker pool that runs dispatched requests.
    metrics:
        Optional :class:`~pixaven.observability.MetricsHook` backend.
    debug_dump_payload:
        Write the (redacted) request and response to *stderr*.
    """

    # ── Core ────────────────────────────────────────────────────────────
    api_key: str = ""

    base_url: str = DEFAULT_BASE_URL

    # ── Retry & rate ────────────────────────────────────────────────────
    retry_max_attempts: int = 3

    retry_base_delay: float = 1.0

    retry_max_delay: float = 30.0

    retry_jitter: bool = True

    rate_limit_rps: float = 10.0

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 60.0

    http_proxy: str | None = None

    max_workers: int = 4

    # ── Observability ──────────────────────────────────────────────────
    metrics: MetricsHook | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.base_url)
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS to protect your API key, or target localhost for testing."
            )

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.rate_limit_rps <= 0:
            raise ValueError(f"rate_limit_rps must be > 0, got {self.rate_limit_rps}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    def __repr__(self) -> str:
        """Mask the API key to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "api_key":
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"api_key='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"PixavenConfig({', '.join(parts)})"
