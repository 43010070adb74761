# cookie_session/app.py
import re, inspect, os, traceback, html
from urllib.parse import parse_qs
from http import cookies as http_cookies

from .cookies import parse_cookie_header
from .middleware import SessionRegistry

# ---- Config -----------------------------------------------------------------
def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")

DEBUG = _env_bool("COOKIE_SESSION_DEBUG", False)

DEFAULT_SESSION = "session"


def _pretty_tb_html(exc: BaseException) -> str:
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return f"""<!doctype html>
<html><head><meta charset="utf-8"><title>500 Internal Server Error</title></head><body>
<h1>500 Internal Server Error</h1>
<pre>{html.escape(tb)}</pre>
</body></html>"""


# ---- Core -------------------------------------------------------------------
class App:
    def __init__(self):
        self.routes = []  # list of (method, compiled_regex, handler)

    def _compile_path(self, path: str) -> re.Pattern:
        # {id:int}  -> (?P<id>\d+)
        def repl_int(m): return f"(?P<{m.group(1)}>\\d+)"
        # {slug}    -> (?P<slug>[^/]+)
        def repl_str(m): return f"(?P<{m.group(1)}>[^/]+)"
        path = re.sub(r"{(\w+):int}", repl_int, path)
        path = re.sub(r"{(\w+)}", repl_str, path)
        return re.compile("^" + path + "$")

    def add(self, method, path, handler):
        self.routes.append((method.upper(), self._compile_path(path), handler))

    def get(self, path, handler):   self.add("GET",  path, handler)
    def post(self, path, handler):  self.add("POST", path, handler)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return

        method = scope["method"].upper()
        path   = scope["path"]

        allowed: set[str] = set()
        chosen = None          # (handler, params, head_shim: bool)
        for m, rx, handler in self.routes:
            mobj = rx.match(path)
            if not mobj:
                continue
            allowed.add(m)
            if m == method:
                chosen = (handler, mobj.groupdict(), False)
                break
            if method == "HEAD" and m == "GET" and chosen is None:
                chosen = (handler, mobj.groupdict(), True)

        if chosen:
            handler, params, head_shim = chosen
            req = Request(scope, receive, params)
            try:
                result = handler(req)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                if DEBUG:
                    return await Response.html(_pretty_tb_html(exc), 500)(scope, receive, send)
                return await Response.text("Internal Server Error", 500)(scope, receive, send)

            if not isinstance(result, Response):
                result = Response.html(str(result))
            if head_shim:
                result.body = b""
            return await result(scope, receive, send)

        if allowed:
            if "GET" in allowed:
                allowed.add("HEAD")
            resp = Response.text("Method Not Allowed", 405)
            resp.headers.append((b"allow", ", ".join(sorted(allowed)).encode()))
            return await resp(scope, receive, send)

        return await Response.text("Not Found", 404)(scope, receive, send)


class Response:
    def __init__(self, body=b"", status=200, headers=None, content_type="text/html; charset=utf-8"):
        self.body = body if isinstance(body, bytes) else body.encode()
        self.status = status
        self.headers = headers or [(b"content-type", content_type.encode())]
        self._cookies = http_cookies.SimpleCookie()

    def set_cookie(self, name, value, *, http_only=True, samesite="Lax", path="/", max_age=None, secure=False):
        self._cookies[name] = value
        morsel = self._cookies[name]
        morsel["path"] = path
        morsel["samesite"] = samesite
        if http_only: morsel["httponly"] = True
        if secure: morsel["secure"] = True
        if max_age is not None: morsel["max-age"] = str(max_age)

    def delete_cookie(self, name, path="/"):
        self.set_cookie(name, "", max_age=0, path=path)

    async def __call__(self, scope, receive, send):
        headers = list(self.headers)
        for morsel in self._cookies.values():
            headers.append((b"set-cookie", morsel.OutputString().encode()))
        await send({"type": "http.response.start", "status": self.status, "headers": headers})
        await send({"type": "http.response.body", "body": self.body})

    @classmethod
    def html(cls, text, status=200):       return cls(text, status)
    @classmethod
    def text(cls, text, status=200):       return cls(text, status, content_type="text/plain; charset=utf-8")
    @classmethod
    def redirect(cls, location, status=303):
        return cls(b"", status, headers=[(b"location", location.encode())])


class Request:
    def __init__(self, scope, receive, path_params=None):
        self.scope = scope
        self._receive = receive
        self.method = scope["method"]
        self.path = scope["path"]
        self.query = {
            k: (v[0] if len(v) == 1 else v)
            for k, v in parse_qs(scope.get("query_string", b"").decode()).items()
        }
        self.path_params = path_params or {}
        self._body = None
        self.form = {}
        self.cookies = parse_cookie_header(scope.get("headers", []))

    async def load_body(self):
        if self._body is not None:
            return
        chunks = []
        while True:
            event = await self._receive()
            if event["type"] == "http.request":
                if event.get("body"):
                    chunks.append(event["body"])
                if not event.get("more_body"):
                    break
            elif event["type"] == "http.disconnect":
                break
        self._body = b"".join(chunks)
        headers = {k.decode().lower(): v.decode() for k, v in self.scope.get("headers", [])}
        ctype = headers.get("content-type", "")
        if "application/x-www-form-urlencoded" in ctype:
            self.form = {
                k: (v[0] if len(v) == 1 else v)
                for k, v in parse_qs(self._body.decode()).items()
            }

    # ---- sessions -----------------------------------------------------------
    @property
    def sessions(self) -> SessionRegistry:
        registry = self.scope.get("sessions")
        if not isinstance(registry, SessionRegistry):
            raise RuntimeError("no sessions on this request; is CookieSessionMiddleware installed?")
        return registry

    @property
    def sessions_options(self):
        return self.sessions.options

    @property
    def session(self):
        """The default namespace: a dict-like Session, or None once cleared."""
        return self._default_handle().get()

    @session.setter
    def session(self, value):
        self._default_handle().set(value)

    @property
    def session_options(self):
        return self._default_handle().overrides

    def _default_handle(self):
        registry = self.sessions
        if DEFAULT_SESSION not in registry:
            raise RuntimeError(f"no {DEFAULT_SESSION!r} session configured on this request")
        return registry.handle(DEFAULT_SESSION)
