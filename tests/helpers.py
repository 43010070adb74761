"""Helpers for driving ASGI apps in-process."""
from dataclasses import dataclass, field

from cookie_session.cookies import Keygrip


@dataclass
class Result:
    status: int
    headers: list = field(default_factory=list)
    body: bytes = b""

    @property
    def set_cookies(self) -> list[str]:
        return [v.decode("latin-1") for k, v in self.headers if k.lower() == b"set-cookie"]

    def cookie(self, name: str) -> str | None:
        """The Set-Cookie header for ``name``, or None."""
        for c in self.set_cookies:
            if c.split("=", 1)[0] == name:
                return c
        return None

    def cookie_value(self, name: str) -> str | None:
        c = self.cookie(name)
        return c.split(";", 1)[0].split("=", 1)[1] if c is not None else None


def scope_for(path="/", method="GET", cookies=None, scheme="http", headers=None):
    raw = list(headers or [])
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return {
        "type": "http",
        "method": method,
        "path": path,
        "scheme": scheme,
        "query_string": b"",
        "headers": raw,
    }


def signed(name, value, key="k1"):
    """Request cookies for a value signed with ``key``."""
    return {name: value, name + ".sig": Keygrip([key]).sign(f"{name}={value}")}


async def call_app(app, path="/", method="GET", cookies=None, scheme="http", body=b"", headers=None):
    scope = scope_for(path, method, cookies, scheme, headers)
    events = [{"type": "http.request", "body": body, "more_body": False}]
    result = Result(status=0)

    async def receive():
        return events.pop(0) if events else {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.start":
            result.status = message["status"]
            result.headers = list(message.get("headers") or [])
        elif message["type"] == "http.response.body":
            result.body += message.get("body", b"")

    await app(scope, receive, send)
    return result
