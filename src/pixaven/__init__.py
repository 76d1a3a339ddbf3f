"""pixaven -- fluent Python client for the Pixaven image-processing API.

Public re-exports
-----------------

* **Client:** :class:`Pixaven`
* **Builder:** :class:`RequestBuilder`
* **Sender contract:** :class:`RequestSender`, :class:`PixavenTransport`
* **Configuration:** :class:`PixavenConfig`
* **Errors:** Every :class:`PixavenError` subclass and :class:`ErrorCode`
* **Models:** :class:`RequestOptions`, :class:`InputMode`, :class:`ResponseMode`

Usage::

    from pixaven import Pixaven

    pixaven = Pixaven("your-api-key")

    def done(err, response):
        print(err or response["output"]["url"])

    pixaven.fetch("https://example.com/cat.jpg").resize({"width": 300}).to_json(done)
"""

from __future__ import annotations

# ── Client ─────────────────────────────────────────────────────────────
from pixaven.api.transport import PixavenTransport
from pixaven.builder import RequestBuilder
from pixaven.client import Pixaven

# ── Configuration ───────────────────────────────────────────────────────
from pixaven.config import DEFAULT_BASE_URL, PixavenConfig

# ── Errors ──────────────────────────────────────────────────────────────
from pixaven.errors import (
    ErrorCode,
    PixavenAPIError,
    PixavenAuthError,
    PixavenCallbackError,
    PixavenError,
    PixavenFileError,
    PixavenNetworkError,
    PixavenNotFoundError,
    PixavenPayloadTooLargeError,
    PixavenPermissionError,
    PixavenRetryExhaustedError,
    PixavenValidationError,
)

# ── Models ──────────────────────────────────────────────────────────────
from pixaven.models import OPERATIONS, InputMode, RequestOptions, ResponseMode
from pixaven.sender import RequestSender

__version__ = "1.0.0"

__all__ = [
    # Client
    "Pixaven",
    "RequestBuilder",
    "RequestSender",
    "PixavenTransport",
    # Configuration
    "PixavenConfig",
    "DEFAULT_BASE_URL",
    # Errors
    "PixavenError",
    "ErrorCode",
    "PixavenValidationError",
    "PixavenCallbackError",
    "PixavenAuthError",
    "PixavenPermissionError",
    "PixavenNotFoundError",
    "PixavenPayloadTooLargeError",
    "PixavenAPIError",
    "PixavenRetryExhaustedError",
    "PixavenNetworkError",
    "PixavenFileError",
    # Models
    "RequestOptions",
    "InputMode",
    "ResponseMode",
    "OPERATIONS",
]
