"""Metrics hook protocol and the SDK's metric names.

pixaven emits counters and timings around dispatch and HTTP requests.  Pass
any object satisfying :class:`MetricsHook` as ``PixavenConfig.metrics`` to
route them to StatsD, Prometheus, Datadog or similar; by default they are
discarded by :class:`NoopMetricsHook`.

Emitted metric names:

* ``pixaven.dispatch_total``          -- counter, tagged by ``mode``
* ``pixaven.deferred_errors_total``   -- counter, tagged by ``mode``
* ``pixaven.requests_total``          -- counter, tagged by ``path``, ``status``
* ``pixaven.retries_total``           -- counter, tagged by ``path``, ``reason``
* ``pixaven.rate_limited_total``      -- counter, tagged by ``path``
* ``pixaven.failures_total``          -- counter, tagged by ``mode``, ``code``
* ``pixaven.request_duration_ms``     -- timing, tagged by ``path``, ``status``
* ``pixaven.rate_limit_wait_ms``      -- timing, tagged by ``path``

A user-supplied backend runs inside request workers.  It is wrapped in a
:class:`GuardedMetricsHook` so a broken backend is logged instead of
aborting the request before its callback has run.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .logger import get_logger

log = get_logger("pixaven.metrics")

DISPATCH_TOTAL = "pixaven.dispatch_total"
DEFERRED_ERRORS_TOTAL = "pixaven.deferred_errors_total"
REQUESTS_TOTAL = "pixaven.requests_total"
RETRIES_TOTAL = "pixaven.retries_total"
RATE_LIMITED_TOTAL = "pixaven.rate_limited_total"
FAILURES_TOTAL = "pixaven.failures_total"
REQUEST_DURATION_MS = "pixaven.request_duration_ms"
RATE_LIMIT_WAIT_MS = "pixaven.rate_limit_wait_ms"


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    Both methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


class GuardedMetricsHook:
    """Forward to *backend*, logging instead of raising on backend errors.

    Each failing metric name is logged once, at WARNING, on the
    ``pixaven.metrics`` logger.
    """

    def __init__(self, backend: MetricsHook) -> None:
        self.backend = backend
        self._reported: set[str] = set()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        try:
            self.backend.increment(name, value, tags=tags)
        except Exception as exc:  # noqa: BLE001
            self._report(name, exc)

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        try:
            self.backend.timing(name, ms, tags=tags)
        except Exception as exc:  # noqa: BLE001
            self._report(name, exc)

    def _report(self, name: str, exc: Exception) -> None:
        if name in self._reported:
            return
        self._reported.add(name)
        log.warning(
            "Metrics backend failed",
            extra={"extra_fields": {"metric": name, "error": repr(exc)}},
        )


def resolve_metrics(backend: MetricsHook | None) -> MetricsHook:
    """Return the hook the SDK should emit to for a configured *backend*."""
    if backend is None:
        return NoopMetricsHook()
    if isinstance(backend, (NoopMetricsHook, GuardedMetricsHook)):
        return backend
    return GuardedMetricsHook(backend)
