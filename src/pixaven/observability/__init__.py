"""Observability: structured logging and metrics hooks for pixaven."""

from __future__ import annotations

from .logger import StructuredFormatter, chain_fields, get_logger
from .metrics import (
    GuardedMetricsHook,
    MetricsHook,
    NoopMetricsHook,
    resolve_metrics,
)

__all__ = [
    "GuardedMetricsHook",
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "chain_fields",
    "get_logger",
    "resolve_metrics",
]
