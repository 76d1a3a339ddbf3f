"""Shared test fixtures for the pixaven test suite."""

from __future__ import annotations

from typing import Any

import pytest

from pixaven.builder import RequestBuilder
from pixaven.config import PixavenConfig
from pixaven.models import RequestOptions


class RecordingSender:
    """Sender that records every dispatch and answers only when told to."""

    def __init__(self) -> None:
        self.calls: list[tuple[RequestOptions, Any]] = []

    def send(self, options: RequestOptions, callback: Any) -> None:
        self.calls.append((options, callback))

    def reply(self, *args: Any) -> None:
        """Invoke the callback of the most recent dispatch."""
        self.calls[-1][1](*args)


class CallbackRecorder:
    """Callable that stores the arguments of each invocation."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)

    @property
    def err(self) -> Any:
        return self.calls[-1][0]


@pytest.fixture
def config() -> PixavenConfig:
    """Default test configuration with a dummy key."""
    return PixavenConfig(api_key="test_key_1234")


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def builder(sender: RecordingSender) -> RequestBuilder:
    return RequestBuilder(sender)


@pytest.fixture
def cb() -> CallbackRecorder:
    return CallbackRecorder()
