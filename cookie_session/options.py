# cookie_session/options.py
from __future__ import annotations
import os
from dataclasses import dataclass, asdict, fields
from datetime import datetime
from typing import Any

# Attributes later middleware may override per request.
COOKIE_ATTRS = (
    "http_only", "overwrite", "signed",
    "path", "domain", "max_age", "expires", "same_site", "secure",
)


class ConfigurationError(ValueError):
    """Raised at construction time for unusable session options."""


def _env_keys() -> list[str] | None:
    """COOKIE_SESSION_KEYS (comma separated, newest first) or COOKIE_SESSION_SECRET."""
    v = os.getenv("COOKIE_SESSION_KEYS")
    if v:
        keys = [k.strip() for k in v.split(",") if k.strip()]
        if keys:
            return keys
    secret = os.getenv("COOKIE_SESSION_SECRET")
    return [secret] if secret else None


@dataclass(frozen=True)
class SessionOptions:
    name: str = "session"
    session_name: str = "session"
    http_only: bool = True
    overwrite: bool = True
    signed: bool = True
    keys: tuple[str, ...] | None = None
    secret: str | None = None
    # pass-through cookie attributes
    path: str = "/"
    domain: str | None = None
    max_age: int | None = None
    expires: datetime | None = None
    same_site: str | bool | None = None
    secure: bool | None = None

    @classmethod
    def build(cls, **kwargs) -> "SessionOptions":
        """Apply defaults, resolve signing keys and fail fast on bad input."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise ConfigurationError(f"unknown session option(s): {', '.join(unknown)}")

        # None means "use the default", as with keyword omission
        kwargs = {k: v for k, v in kwargs.items() if v is not None}

        keys = kwargs.pop("keys", None)
        if isinstance(keys, (str, bytes)):
            raise ConfigurationError("'keys' must be a list of strings, not a single string")
        keys = list(keys) if keys else []
        if not keys and kwargs.get("secret"):
            keys = [kwargs["secret"]]
        if not keys:
            keys = _env_keys() or []

        opts = cls(keys=tuple(keys) or None, **kwargs)
        if opts.signed and not opts.keys:
            raise ConfigurationError("If 'signed' is true, 'keys' or 'secret' are required.")
        if not opts.name:
            raise ConfigurationError("cookie 'name' must not be empty")
        return opts

    def cookie_attrs(self) -> dict[str, Any]:
        return {k: getattr(self, k) for k in COOKIE_ATTRS}

    def describe(self) -> dict[str, Any]:
        """Options without key material, for logging."""
        d = asdict(self)
        d["keys"] = len(self.keys or ())
        d["secret"] = bool(self.secret)
        return d


class CookieOptions:
    """
    Per-request override handle for one session namespace.

    Reads fall back to the base options; writes record an override that wins
    when the response cookie is written:

        req.session_options.max_age = 3600
    """

    def __init__(self, base: SessionOptions):
        object.__setattr__(self, "_base", base)
        object.__setattr__(self, "_overrides", {})

    def __getattr__(self, name):
        overrides = self.__dict__["_overrides"]
        if name in overrides:
            return overrides[name]
        return getattr(self.__dict__["_base"], name)

    def __setattr__(self, name, value):
        if name not in COOKIE_ATTRS:
            raise AttributeError(f"session option {name!r} cannot be overridden per request")
        self._overrides[name] = value

    def __delattr__(self, name):
        self._overrides.pop(name, None)

    @property
    def base(self) -> SessionOptions:
        return self._base

    def resolve(self) -> dict[str, Any]:
        """Field-by-field merge of base cookie attributes and overrides."""
        attrs = self._base.cookie_attrs()
        attrs.update(self._overrides)
        return attrs

    def __repr__(self):
        return f"CookieOptions({self.resolve()!r})"
