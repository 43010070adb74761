# cookie_session/codec.py
from __future__ import annotations
import base64, binascii, json
from typing import Any, Mapping


class DecodeError(ValueError):
    """The cookie value is not base64-encoded JSON describing an object."""


def encode(body: Mapping[str, Any]) -> str:
    """Encode a mapping into a base64-encoded JSON string."""
    raw = json.dumps(dict(body), separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode(string: str) -> dict[str, Any]:
    """Decode a base64 cookie value back into a dict."""
    try:
        blob = base64.b64decode(string.encode("ascii"), validate=True)
        body = json.loads(blob.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise DecodeError(f"malformed session value: {exc}") from exc
    if not isinstance(body, dict):
        raise DecodeError(f"session value must be an object, got {type(body).__name__}")
    return body
