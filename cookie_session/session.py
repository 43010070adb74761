# cookie_session/session.py
from __future__ import annotations
from typing import Any, Mapping

from .codec import DecodeError, decode, encode


class HydrationError(ValueError):
    """A session could not be rebuilt from its cookie value."""


class SessionContext:
    """Metadata kept beside a session: newness and the value it was read from."""

    __slots__ = ("is_new", "value")

    def __init__(self, is_new: bool = True, value: str | None = None):
        self.is_new = is_new
        self.value = value


class Session(dict):
    """
    The dict handed to application code as ``req.session``.

    Only dict items are serialized; the context lives in a slot so it never
    shows up in ``keys()``, ``len()`` or the cookie.
    """

    __slots__ = ("_ctx",)

    def __init__(self, ctx: SessionContext, obj: Mapping[str, Any] | None = None):
        super().__init__(obj or {})
        object.__setattr__(self, "_ctx", ctx)

    def __setattr__(self, name, value):
        if name == "_ctx":
            raise AttributeError("session context cannot be replaced")
        super().__setattr__(name, value)

    def __reduce__(self):
        # copy, deepcopy and pickle rebuild with a fresh context
        return _rebuild, (type(self), self._ctx.is_new, self._ctx.value, dict(self))

    # ----- construction -----
    @classmethod
    def create(cls, obj: Mapping[str, Any] | None = None) -> "Session":
        return cls(SessionContext(), obj)

    @classmethod
    def hydrate(cls, raw: str) -> "Session":
        try:
            obj = decode(raw)
        except DecodeError as exc:
            raise HydrationError(str(exc)) from exc
        return cls(SessionContext(is_new=False, value=raw), obj)

    def serialize(self) -> str:
        return encode(self)

    # ----- flags -----
    @property
    def context(self) -> SessionContext:
        return self._ctx

    @property
    def is_new(self) -> bool:
        return self._ctx.is_new

    @property
    def is_changed(self) -> bool:
        # compared against the live items on every read
        return self._ctx.is_new or self._ctx.value != self.serialize()

    @property
    def is_populated(self) -> bool:
        return len(self) > 0

    def __repr__(self):
        return f"Session({dict.__repr__(self)}, new={self.is_new})"


def _rebuild(cls, is_new, value, items):
    return cls(SessionContext(is_new=is_new, value=value), items)
