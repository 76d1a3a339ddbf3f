"""Tests for pixaven/utils/redact.py."""

from __future__ import annotations

import io

from pixaven.utils.redact import redact

API_KEY = "pk_live_abcdef9876"


class TestRedact:
    def test_basic_auth_header_is_masked(self):
        assert redact({"Authorization": "Basic cGtfdGVzdDo="}) == {
            "Authorization": "Basic <redacted>",
        }

    def test_api_key_scrubbed_everywhere(self):
        out = redact({"note": f"key was {API_KEY} here"}, API_KEY)
        assert API_KEY not in out["note"]
        assert out["note"].endswith("<redacted:...9876> here")

    def test_sensitive_keys_in_store_credentials(self):
        payload = {
            "store": {
                "s3": {
                    "key": "AKIAEXAMPLE",
                    "secret": "wJalrXUtnFEMI",
                    "bucket": "images",
                    "region": "eu-central-1",
                }
            }
        }
        out = redact(payload)
        s3 = out["store"]["s3"]
        assert s3["key"] == "<redacted>"
        assert s3["secret"] == "<redacted>"
        assert s3["bucket"] == "images"
        assert s3["region"] == "eu-central-1"

    def test_non_string_sensitive_value(self):
        assert redact({"credentials": {"a": 1}}) == {"credentials": "<redacted>"}

    def test_bytes_become_placeholder(self):
        assert redact({"body": b"\x89PNG\x00\x00"}) == {"body": "<binary:6_bytes>"}

    def test_streams_become_placeholder(self):
        out = redact({"file": io.BytesIO(b"x")})
        assert out == {"file": "<stream:BytesIO>"}

    def test_lists_are_walked(self):
        out = redact({"items": [b"ab", {"token": "t"}]})
        assert out == {"items": ["<binary:2_bytes>", {"token": "<redacted>"}]}

    def test_input_is_not_mutated(self):
        payload = {"resize": {"width": 100}, "secret": "s"}
        redact(payload)
        assert payload == {"resize": {"width": 100}, "secret": "s"}

    def test_operations_pass_through(self):
        payload = {"url": "https://e/a.jpg", "resize": {"width": 100, "mode": "fit"}}
        assert redact(payload, API_KEY) == payload
