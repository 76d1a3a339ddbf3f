"""Pixaven SDK client.

:class:`Pixaven` holds the API key and a transport, and starts a fresh
:class:`~pixaven.builder.RequestBuilder` for every request.

Usage::

    from pixaven import Pixaven

    def done(err, meta):
        if err:
            raise err
        print("saved", meta["output"]["width"], "px wide")

    with Pixaven("your-api-key") as pixaven:
        (
            pixaven.upload("photo.jpg")
            .resize({"width": 800, "height": 600, "mode": "fill"})
            .output({"format": "webp"})
            .to_file("photo.webp", done)
            .wait()
        )
"""

from __future__ import annotations

from typing import Any

from pixaven.api.transport import PixavenTransport
from pixaven.builder import RequestBuilder
from pixaven.config import PixavenConfig
from pixaven.models import FileSource
from pixaven.sender import RequestSender


class Pixaven:
    """Entry point of the SDK.

    Parameters
    ----------
    api_key:
        Pixaven API key.  **Required.**
    sender:
        Replace the default :class:`PixavenTransport`, e.g. with a fake in
        tests.  The client does not close a sender it did not create.
    **kwargs:
        All remaining keyword arguments are forwarded to
        :class:`PixavenConfig`.
    """

    def __init__(
        self,
        api_key: str,
        *,
        sender: RequestSender | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = PixavenConfig(api_key=api_key, **kwargs)
        self._owns_sender = sender is None
        self._sender: RequestSender = sender if sender is not None else PixavenTransport(self._config)

    @property
    def config(self) -> PixavenConfig:
        return self._config

    def builder(self) -> RequestBuilder:
        """Start an empty request chain."""
        return RequestBuilder(self._sender, metrics=self._config.metrics)

    def upload(self, file: FileSource) -> RequestBuilder:
        """Start a chain that uploads a local path or readable stream."""
        return self.builder().upload(file)

    def fetch(self, url: str) -> RequestBuilder:
        """Start a chain that has the API fetch the image at *url*."""
        return self.builder().fetch(url)

    # ------------------------------------------------------------------
    # Resource management
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Wait for in-flight requests and close the default transport."""
        if self._owns_sender:
            self._sender.close()  # type: ignore[attr-defined]

    def __enter__(self) -> Pixaven:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
