"""Data models shared by the builder and the transport.

:class:`RequestOptions` is the per-chain state a :class:`RequestBuilder`
accumulates and hands to a sender on its terminal call.  Senders treat it
as read-only.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Union

FileSource = Union[str, "os.PathLike[str]", BinaryIO]
"""A local path or a readable binary stream."""

FileDestination = Union[str, "os.PathLike[str]", BinaryIO]
"""A local path or a writable binary stream."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class InputMode(str, Enum):
    """How the source image reaches the API."""

    NONE = "none"
    """No input method has been chosen yet."""

    UPLOAD = "upload"
    """The image is read from a local path or stream and uploaded."""

    FETCH = "fetch"
    """The API downloads the image from a URL."""


class ResponseMode(str, Enum):
    """How the result of a request is delivered."""

    NONE = "none"
    JSON = "json"
    FILE = "file"
    BUFFER = "buffer"

    @property
    def is_binary(self) -> bool:
        return self in (ResponseMode.FILE, ResponseMode.BUFFER)


OPERATIONS: tuple[str, ...] = (
    "resize",
    "scale",
    "crop",
    "watermark",
    "mask",
    "stylize",
    "adjust",
    "auto",
    "border",
    "padding",
    "store",
    "output",
    "webhook",
    "cdn",
)
"""Names of every modifier operation, in wire order."""


# ---------------------------------------------------------------------------
# Per-chain request state
# ---------------------------------------------------------------------------

@dataclass
class RequestOptions:
    """Everything a sender needs to perform one API request.

    Attributes
    ----------
    input_mode:
        Which input method was selected; at most one per chain.
    file:
        Upload source.  Set only when *input_mode* is ``UPLOAD``.
    proxy:
        Per-request proxy URL, overriding the client default.
    request:
        The JSON payload sent to the API: one entry per modifier operation,
        plus ``url`` for fetch requests and ``response`` for binary modes.
        Values are passed through unmodified.
    response_mode:
        Which terminal call dispatched the chain.
    output_file:
        Destination for ``FILE`` mode.
    error_message:
        First validation failure recorded on the chain, if any.  A
        non-empty value means the request must not reach the network.
    """

    input_mode: InputMode = InputMode.NONE
    file: FileSource | None = None
    proxy: str | None = None
    request: dict[str, Any] = field(default_factory=dict)
    response_mode: ResponseMode = ResponseMode.NONE
    output_file: FileDestination | None = None
    error_message: str | None = None

    @property
    def url(self) -> str | None:
        """Source URL for fetch requests."""
        return self.request.get("url")

    @property
    def endpoint(self) -> str:
        """API path matching the input mode."""
        return "/upload" if self.input_mode is InputMode.UPLOAD else "/fetch"

    def fail(self, message: str) -> bool:
        """Record *message* unless an earlier error is already recorded.

        Returns ``True`` if the message was recorded.
        """
        if self.error_message:
            return False
        self.error_message = message
        return True
