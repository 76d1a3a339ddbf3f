"""Property-based tests for the request builder using Hypothesis.

These check the chain invariants over arbitrary call sequences rather than
hand-picked examples.
"""

from __future__ import annotations

from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from pixaven.builder import RequestBuilder
from pixaven.models import OPERATIONS, InputMode, ResponseMode


class _Sender:
    def __init__(self) -> None:
        self.calls: list[Any] = []

    def send(self, options, callback) -> None:
        self.calls.append(options)


# Operation payloads: small JSON-like mappings, or junk that must be ignored.
_payload_st = st.dictionaries(
    st.text(min_size=1, max_size=8),
    st.one_of(st.integers(), st.text(max_size=8), st.booleans()),
    max_size=3,
)
_junk_st = st.one_of(st.none(), st.integers(), st.text(max_size=8), st.lists(st.integers(), max_size=2))

# Exclude webhook/store so binary terminals stay valid.
_safe_ops = [op for op in OPERATIONS if op not in ("webhook", "store")]
_call_st = st.tuples(st.sampled_from(_safe_ops), st.one_of(_payload_st, _junk_st))


@given(calls=st.lists(_call_st, max_size=20), terminal=st.sampled_from(["json", "buffer"]))
def test_valid_chain_dispatches_once_with_last_values(calls, terminal):
    sender = _Sender()
    builder = RequestBuilder(sender).fetch("https://example.com/a.jpg")
    expected: dict[str, Any] = {}
    for name, data in calls:
        getattr(builder, name)(data)
        if isinstance(data, dict):
            expected[name] = data

    received = []
    if terminal == "json":
        builder.to_json(lambda *a: received.append(a))
    else:
        builder.to_buffer(lambda *a: received.append(a))

    assert len(sender.calls) == 1
    assert received == []
    options = sender.calls[0]
    ops = {k: v for k, v in options.request.items() if k not in ("url", "response")}
    assert ops == expected
    assert options.response_mode is ResponseMode(terminal)


@given(order=st.permutations(["upload", "fetch"]))
def test_both_inputs_never_reach_sender(order):
    sender = _Sender()
    builder = RequestBuilder(sender)
    for method in order:
        if method == "upload":
            builder.upload("/tmp/a.png")
        else:
            builder.fetch("https://example.com/a.jpg")

    errors = []
    builder.to_json(lambda err, response: errors.append(err))

    assert sender.calls == []
    assert "one file input method" in errors[0].message
    assert builder.options.input_mode is InputMode(order[0])


@given(junk=st.lists(_junk_st, min_size=1, max_size=5))
def test_junk_never_records_errors(junk):
    builder = RequestBuilder(_Sender()).upload("/tmp/a.png")
    for value in junk:
        for name in OPERATIONS:
            getattr(builder, name)(value)
        builder.proxy(value if not isinstance(value, str) else None)
    assert builder.options.request == {}
    assert builder.options.proxy is None
    assert builder.options.error_message is None
