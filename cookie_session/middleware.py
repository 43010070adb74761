# cookie_session/middleware.py
from __future__ import annotations
import enum
from collections.abc import Mapping
from typing import Any, Iterator

from ._log import log
from .cookies import Cookies
from .options import CookieOptions, SessionOptions
from .session import HydrationError, Session


class InvalidAssignmentError(TypeError):
    """A session may only be set to None or a mapping."""


class State(enum.Enum):
    UNTOUCHED = "untouched"
    UNSET = "unset"
    RESOLVED = "resolved"


class SessionHandle:
    """
    Accessor for one session namespace within one request.

    ``get()`` loads lazily and memoizes; ``set()`` replaces or clears;
    ``commit()`` is the decision run once the response headers are final.
    """

    def __init__(self, options: SessionOptions, cookies: Cookies, overrides: CookieOptions | None = None):
        self.options = options
        self.cookies = cookies
        self.overrides = overrides if overrides is not None else CookieOptions(options)
        self.state = State.UNTOUCHED
        self._session: Session | None = None

    @property
    def name(self) -> str:
        return self.options.name

    def get(self) -> Session | None:
        if self.state is State.RESOLVED:
            return self._session
        if self.state is State.UNSET:
            return None

        sess = self._load()
        if sess is None:
            log(f"new {self.name} session")
            sess = Session.create()
        self._session = sess
        self.state = State.RESOLVED
        return sess

    def set(self, value: Any) -> Session | None:
        if value is None:
            self._session = None
            self.state = State.UNSET
            return None
        if isinstance(value, Mapping):
            self._session = Session.create(value)
            self.state = State.RESOLVED
            return self._session
        raise InvalidAssignmentError(
            f"req.session can only be set as None or a mapping, not {type(value).__name__}"
        )

    def _load(self) -> Session | None:
        raw = self.cookies.get(self.name, signed=self.overrides.signed)
        if not raw:
            return None
        log(f"parsing {self.name} session: {raw}")
        try:
            return Session.hydrate(raw)
        except HydrationError as exc:
            log(f"discarding {self.name} session: {exc}")
            return None

    def commit(self) -> str | None:
        """Write or delete the cookie as the session state requires; never raises."""
        if self.state is State.UNTOUCHED:
            return None
        attrs = self.overrides.resolve()
        try:
            if self.state is State.UNSET:
                log(f"remove {self.name}")
                self.cookies.set(self.name, "", **attrs)
                return "delete"
            sess = self._session
            if (not sess.is_new or sess.is_populated) and sess.is_changed:
                log(f"save {self.name}")
                self.cookies.set(self.name, sess.serialize(), **attrs)
                return "save"
        except Exception as exc:
            log(f"error saving session {self.name}: {exc}")
        return None


class SessionRegistry(Mapping):
    """
    Request-scoped namespaces, stored in ``scope["sessions"]``.

    ``registry["flash"]`` resolves the session, ``registry["flash"] = None``
    clears it.
    """

    def __init__(self):
        self._handles: dict[str, SessionHandle] = {}

    def register(self, session_name: str, handle: SessionHandle):
        self._handles[session_name] = handle

    def handle(self, session_name: str) -> SessionHandle:
        return self._handles[session_name]

    @property
    def options(self) -> dict[str, CookieOptions]:
        return {n: h.overrides for n, h in self._handles.items()}

    def __getitem__(self, session_name: str) -> Session | None:
        return self._handles[session_name].get()

    def __setitem__(self, session_name: str, value):
        self._handles[session_name].set(value)

    def __delitem__(self, session_name: str):
        self._handles[session_name].set(None)

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, session_name) -> bool:
        # membership must not resolve the session
        return session_name in self._handles


class CookieSessionMiddleware:
    """
    ASGI middleware giving every http request a cookie-backed session.

        app = CookieSessionMiddleware(app, keys=["new", "old"])
        app = CookieSessionMiddleware(app, name="flash", session_name="flash", secret="s")

    Stack it once per namespace. The decision for each namespace runs when
    the wrapped app sends ``http.response.start``.
    """

    def __init__(self, app, **options):
        self.app = app
        self.options = SessionOptions.build(**options)
        log(f"{self.options.name} session options", self.options.describe())

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        opts = self.options
        cookies = Cookies(scope, keys=opts.keys)
        handle = SessionHandle(opts, cookies)

        registry = scope.get("sessions")
        if not isinstance(registry, SessionRegistry):
            registry = scope["sessions"] = SessionRegistry()
        registry.register(opts.session_name, handle)

        async def send_with_session(message):
            if message["type"] == "http.response.start":
                handle.commit()
                message = dict(message)
                message["headers"] = cookies.apply(list(message.get("headers") or []))
            await send(message)

        await self.app(scope, receive, send_with_session)
