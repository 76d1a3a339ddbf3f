"""Tests for pixaven/models.py and pixaven/sender.py."""

from __future__ import annotations

import pytest

from pixaven.errors import PixavenValidationError
from pixaven.models import InputMode, RequestOptions, ResponseMode
from pixaven.sender import RequestSender, deliver_deferred_error, failure_args


class TestRequestOptions:
    def test_defaults(self):
        options = RequestOptions()
        assert options.input_mode is InputMode.NONE
        assert options.response_mode is ResponseMode.NONE
        assert options.request == {}
        assert options.error_message is None

    def test_fail_keeps_first_message(self):
        options = RequestOptions()
        assert options.fail("first") is True
        assert options.fail("second") is False
        assert options.error_message == "first"

    def test_endpoint_follows_input_mode(self):
        assert RequestOptions(input_mode=InputMode.UPLOAD).endpoint == "/upload"
        assert RequestOptions(input_mode=InputMode.FETCH).endpoint == "/fetch"

    def test_url_reads_request_payload(self):
        options = RequestOptions(request={"url": "https://e/a.jpg"})
        assert options.url == "https://e/a.jpg"

    @pytest.mark.parametrize(
        ("mode", "binary"),
        [
            (ResponseMode.NONE, False),
            (ResponseMode.JSON, False),
            (ResponseMode.FILE, True),
            (ResponseMode.BUFFER, True),
        ],
    )
    def test_is_binary(self, mode, binary):
        assert mode.is_binary is binary


class TestSenderHelpers:
    def test_failure_args_shape(self):
        err = ValueError("x")
        assert failure_args(ResponseMode.JSON, err) == (err, None)
        assert failure_args(ResponseMode.FILE, err) == (err, None)
        assert failure_args(ResponseMode.BUFFER, err) == (err, None, None)

    def test_no_error_leaves_callback_alone(self, cb):
        assert deliver_deferred_error(RequestOptions(), cb) is False
        assert cb.calls == []

    def test_recorded_error_is_delivered(self, cb):
        options = RequestOptions(response_mode=ResponseMode.BUFFER, error_message="nope")
        assert deliver_deferred_error(options, cb) is True
        err, meta, data = cb.calls[0]
        assert isinstance(err, PixavenValidationError)
        assert err.message == "nope"
        assert meta is None and data is None

    def test_protocol_is_structural(self, sender):
        assert isinstance(sender, RequestSender)
        assert not isinstance(object(), RequestSender)
