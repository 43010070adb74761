# cookie_session/cookies.py
from __future__ import annotations
import base64, hashlib, hmac
from datetime import datetime, timezone
from email.utils import format_datetime
from http import cookies as http_cookies
from typing import Iterable, Sequence

from ._log import log

MAX_COOKIE_SIZE = 4096
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SAMESITE = {True: "Strict", "strict": "Strict", "lax": "Lax", "none": "None"}


class CookieError(ValueError):
    """The jar refused to write a cookie."""


class Keygrip:
    """HMAC signer over an ordered key list: sign with the first, verify with any."""

    def __init__(self, keys: Sequence[str | bytes]):
        if not keys:
            raise ValueError("Keygrip needs at least one key")
        self.keys = [k.encode() if isinstance(k, str) else k for k in keys]

    @staticmethod
    def _digest(key: bytes, data: str) -> str:
        mac = hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(mac).decode().rstrip("=")

    def sign(self, data: str) -> str:
        return self._digest(self.keys[0], data)

    def index(self, data: str, digest: str) -> int:
        """Position of the key that produced ``digest``, -1 when none did."""
        for i, key in enumerate(self.keys):
            if hmac.compare_digest(digest.encode(), self._digest(key, data).encode()):
                return i
        return -1

    def verify(self, data: str, digest: str) -> bool:
        return self.index(data, digest) > -1


def parse_cookie_header(headers: Iterable[tuple[bytes, bytes]]) -> dict[str, str]:
    """
    Request cookies from raw ASGI headers; later headers do not override earlier names.

    Each ``name=value`` pair is parsed on its own so one malformed cookie
    only loses itself.
    """
    out: dict[str, str] = {}
    for k, v in headers:
        if k.lower() != b"cookie":
            continue
        for chunk in v.decode("latin-1").split(";"):
            name, sep, value = chunk.partition("=")
            name = name.strip()
            if not sep or not name:
                continue
            out.setdefault(name, http_cookies._unquote(value.strip()))
    return out


def _cookie_name(header: bytes) -> str:
    return header.split(b"=", 1)[0].decode("latin-1").strip()


class Cookies:
    """
    Request-scoped cookie jar.

    Reads come from the request ``Cookie`` header. Writes are queued and
    turned into ``Set-Cookie`` headers by ``apply`` when the response
    starts.
    """

    def __init__(self, scope, keys: Sequence[str] | None = None, secure: bool | None = None):
        self.request_cookies = parse_cookie_header(scope.get("headers", []))
        self.keygrip = Keygrip(keys) if keys else None
        if secure is None:
            secure = scope.get("scheme") in ("https", "wss")
        self.secure = secure
        self._pending: list[tuple[str, bytes, bool]] = []  # (name, header, overwrite)

    # ----- read -----
    def get(self, name: str, signed: bool = False) -> str | None:
        value = self.request_cookies.get(name)
        if not signed:
            return value
        if value is None:
            return None

        sig_name = name + ".sig"
        remote = self.request_cookies.get(sig_name)
        if not remote:
            return None
        if self.keygrip is None:
            raise CookieError("signed cookies require keys")

        data = f"{name}={value}"
        index = self.keygrip.index(data, remote)
        if index < 0:
            log("bad signature for cookie", name)
            self.set(sig_name, "", signed=False)
            return None
        if index > 0:
            # signed with an older key: re-issue with the current one
            self.set(sig_name, self.keygrip.sign(data), signed=False)
        return value

    # ----- write -----
    def set(self, name: str, value: str, *, signed: bool = False, overwrite: bool = False,
            http_only: bool = True, path: str = "/", domain: str | None = None,
            max_age: int | None = None, expires: datetime | None = None,
            same_site: str | bool | None = None, secure: bool | None = None):
        if secure is None:
            secure = self.secure
        if secure and not self.secure:
            raise CookieError("Cannot send secure cookie over unencrypted connection")

        attrs = dict(http_only=http_only, path=path, domain=domain, max_age=max_age,
                     expires=expires, same_site=same_site, secure=secure)
        self._queue(name, value, overwrite, attrs)

        if signed:
            if self.keygrip is None:
                raise CookieError("signed cookies require keys")
            sig = self.keygrip.sign(f"{name}={value}") if value else ""
            self._queue(name + ".sig", sig, overwrite, attrs)

    def _queue(self, name, value, overwrite, attrs):
        header = self._render(name, value, **attrs)
        if len(header) > MAX_COOKIE_SIZE:
            raise CookieError(f"cookie {name!r} is {len(header)} bytes, limit is {MAX_COOKIE_SIZE}")
        if overwrite:
            self._pending = [p for p in self._pending if p[0] != name]
        self._pending.append((name, header, overwrite))

    @staticmethod
    def _render(name, value, *, http_only, path, domain, max_age, expires, same_site, secure) -> bytes:
        morsel = http_cookies.Morsel()
        # raw value: base64 padding must not trigger quoting
        morsel.set(name, value, value)
        if not value:
            # deletion
            max_age, expires = 0, _EPOCH
        if path: morsel["path"] = path
        if domain: morsel["domain"] = domain
        if max_age is not None: morsel["max-age"] = str(int(max_age))
        if expires is not None:
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=timezone.utc)
            morsel["expires"] = format_datetime(expires.astimezone(timezone.utc), usegmt=True)
        if same_site:
            morsel["samesite"] = _SAMESITE.get(
                same_site.lower() if isinstance(same_site, str) else same_site, "Lax"
            )
        if http_only: morsel["httponly"] = True
        if secure: morsel["secure"] = True
        return morsel.OutputString().encode("latin-1")

    @property
    def pending(self) -> list[bytes]:
        return [header for _, header, _ in self._pending]

    def apply(self, headers: list) -> list:
        """Append queued Set-Cookie headers to an ASGI header list."""
        replace = {name for name, _, overwrite in self._pending if overwrite}
        out = [
            (k, v) for k, v in headers
            if not (k.lower() == b"set-cookie" and _cookie_name(v) in replace)
        ]
        out.extend((b"set-cookie", header) for _, header, _ in self._pending)
        self._pending = []
        return out
