"""Structured JSON logger for pixaven.

Every log record is emitted as a single-line JSON object so request
chains can be traced through log aggregation without extra parsing.
Structured fields pass through :func:`pixaven.utils.redact` first, so
``store`` credentials or auth headers attached to a record never reach the
log stream.

Typical structured output::

    {"ts": "2026-10-18T12:00:00.123456+00:00", "level": "DEBUG",
     "logger": "pixaven.builder", "message": "Dispatching request",
     "op": "to_json", "endpoint": "/fetch", "input_mode": "fetch",
     "mode": "json", "operations": ["resize"]}

Usage::

    from pixaven.observability import chain_fields, get_logger

    log = get_logger("pixaven.transport")
    log.info("request sent", extra={"extra_fields": chain_fields(options)})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pixaven.utils.redact import redact

if TYPE_CHECKING:
    from pixaven.models import RequestOptions

# Request keys that are transport hints rather than image operations.
_NON_OPERATION_KEYS = frozenset({"url", "response"})


def chain_fields(options: RequestOptions, **extra: Any) -> dict[str, Any]:
    """Return the standard log fields describing a request chain.

    *extra* is merged on top, e.g. ``chain_fields(options, op="to_json")``.
    """
    fields: dict[str, Any] = {
        "endpoint": options.endpoint,
        "input_mode": options.input_mode.value,
        "mode": options.response_mode.value,
        "operations": [k for k in options.request if k not in _NON_OPERATION_KEYS],
    }
    if options.proxy:
        fields["proxied"] = True
    fields.update(extra)
    return fields


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts``, ``level``, ``logger`` and ``message``.
    Fields passed as ``extra={"extra_fields": {...}}`` are redacted and
    merged into the top-level object; ``exception`` and ``stack_info`` are
    added when present on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(
            record, "extra_fields", None
        )
        if extra_fields is not None:
            log_entry.update(redact(extra_fields))

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


# One handler per logger name so that ``get_logger`` is idempotent.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "pixaven",
    *,
    level: int | str = logging.WARNING,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"pixaven"``.
    level:
        Minimum log level, as an ``int`` or a case-insensitive string.
        Only applied the first time a given *name* is configured.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        A logger with a :class:`StructuredFormatter` handler attached.
        Repeated calls with the same *name* return the same logger and do
        **not** add duplicate handlers.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        # Avoid duplicate output when the root logger has handlers too.
        logger.propagate = False

        _configured_loggers.add(name)

    return logger
