"""Shared helpers for the pixaven SDK."""

from __future__ import annotations

from .redact import redact

__all__ = ["redact"]
