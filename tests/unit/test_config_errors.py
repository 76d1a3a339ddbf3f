"""Tests for pixaven/config.py and pixaven/errors.py."""

from __future__ import annotations

import pytest

from pixaven.config import DEFAULT_BASE_URL, PixavenConfig
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


class TestPixavenConfig:
    def test_defaults(self):
        config = PixavenConfig(api_key="k")
        assert config.base_url == DEFAULT_BASE_URL
        assert config.http_proxy is None
        assert config.metrics is None
        assert config.max_workers >= 1

    def test_repr_masks_api_key(self):
        text = repr(PixavenConfig(api_key="pk_secret_value_1234"))
        assert "pk_secret_value_1234" not in text
        assert "api_key='...1234'" in text

    def test_repr_short_key(self):
        assert "api_key='****'" in repr(PixavenConfig(api_key="ab"))

    @pytest.mark.parametrize(
        "url", ["http://localhost:8080", "http://127.0.0.1/1.0", "https://api.example.com"],
    )
    def test_allowed_base_urls(self, url):
        assert PixavenConfig(base_url=url).base_url == url

    def test_insecure_remote_base_url_rejected(self):
        with pytest.raises(ValueError, match="insecure HTTP"):
            PixavenConfig(base_url="http://api.pixaven.com/1.0")

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("retry_max_attempts", 0),
            ("retry_base_delay", -1.0),
            ("retry_max_delay", -1.0),
            ("rate_limit_rps", 0.0),
            ("timeout_seconds", 0.0),
            ("max_workers", 0),
        ],
    )
    def test_invalid_numbers_rejected(self, field, value):
        with pytest.raises(ValueError, match=field):
            PixavenConfig(**{field: value})


class TestErrors:
    @pytest.mark.parametrize(
        ("cls", "code"),
        [
            (PixavenValidationError, ErrorCode.VALIDATION_ERROR),
            (PixavenCallbackError, ErrorCode.CALLBACK_ERROR),
            (PixavenAuthError, ErrorCode.AUTH_ERROR),
            (PixavenPermissionError, ErrorCode.PERMISSION_ERROR),
            (PixavenNotFoundError, ErrorCode.NOT_FOUND),
            (PixavenPayloadTooLargeError, ErrorCode.PAYLOAD_TOO_LARGE),
            (PixavenAPIError, ErrorCode.API_ERROR),
            (PixavenRetryExhaustedError, ErrorCode.RETRY_EXHAUSTED),
            (PixavenNetworkError, ErrorCode.NETWORK_ERROR),
            (PixavenFileError, ErrorCode.FILE_ERROR),
        ],
    )
    def test_subclass_codes(self, cls, code):
        err = cls("went wrong", context={"k": 1})
        assert isinstance(err, PixavenError)
        assert err.code == code
        assert err.message == "went wrong"
        assert str(err) == "went wrong"
        assert err.context == {"k": 1}

    def test_cause_is_chained(self):
        root = OSError("disk")
        err = PixavenFileError("cannot read", cause=root)
        assert err.cause is root
        assert err.__cause__ is root

    def test_context_defaults_to_empty_dict(self):
        assert PixavenValidationError("x").context == {}

    def test_repr(self):
        err = PixavenAuthError("bad key", context={"status_code": 401})
        text = repr(err)
        assert text.startswith("PixavenAuthError(code=")
        assert "message='bad key'" in text
        assert "context={'status_code': 401}" in text

    def test_codes_compare_as_strings(self):
        assert ErrorCode.NETWORK_ERROR == "NETWORK_ERROR"
