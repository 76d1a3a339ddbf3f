"""Credential / payload redaction for safe debug output.

:func:`redact` is applied to every request/response dump before it is
written anywhere:

* **Authorization headers** and keys that look sensitive (``api_key``,
  ``secret``, ``token`` ...) are masked.
* The configured **API key** is scrubbed from every string in the tree.
* **Raw bytes** (upload bodies, binary responses) become ``<binary:N_bytes>``.
* **File-like objects** become ``<stream:ClassName>``.
"""

from __future__ import annotations

import re
from typing import Any

# If any of these appear in a key name (case-insensitive), the value is
# redacted.  Covers ``access_key``, ``secret_key``, ``api_key`` and the
# credentials blocks accepted by the ``store`` operation.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "authorization",
    "key",
    "secret",
    "token",
    "password",
    "credential",
    "cookie",
})

_AUTH_SCHEME_RE = re.compile(r"\b(Basic|Bearer)\s+\S+")


def _mask(value: str, api_key: str | None) -> str:
    if api_key and api_key in value:
        suffix = api_key[-4:] if len(api_key) >= 4 else "****"
        placeholder = f"<redacted:...{suffix}>"
        if api_key in placeholder:
            placeholder = "<redacted>"
        value = value.replace(api_key, placeholder)
    return _AUTH_SCHEME_RE.sub(lambda m: f"{m.group(1)} <redacted>", value)


def _redact_value(value: Any, api_key: str | None) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, api_key)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, api_key) for item in value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<binary:{len(value)}_bytes>"
    if isinstance(value, str):
        return _mask(value, api_key)
    if hasattr(value, "read") or hasattr(value, "write"):
        return f"<stream:{type(value).__name__}>"
    return value


def _redact_dict(d: dict, api_key: str | None) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            if isinstance(value, str):
                masked = _mask(value, api_key)
                result[key] = masked if masked != value else "<redacted>"
            else:
                result[key] = "<redacted>"
        else:
            result[key] = _redact_value(value, api_key)
    return result


def redact(payload: dict, api_key: str | None = None) -> dict:
    """Return a copy of *payload* with sensitive data redacted.

    The original *payload* is never mutated.  Streams inside it are
    replaced by placeholders rather than copied, so this is safe to call on
    a dump that references open files.

    Examples
    --------
    >>> redact({"Authorization": "Basic cGtfdGVzdDo="})
    {'Authorization': 'Basic <redacted>'}

    >>> redact({"store": {"s3": {"secret": "abc"}}})
    {'store': {'s3': {'secret': '<redacted>'}}}
    """
    return _redact_dict(payload, api_key)
