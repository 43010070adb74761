"""Test flash messages stored in their own session namespace."""
import pytest

from cookie_session import flash
from cookie_session.app import App
from cookie_session.codec import decode
from cookie_session.middleware import CookieSessionMiddleware

from helpers import signed

pytestmark = pytest.mark.anyio


def flash_app():
    app = App()

    def save(req):
        flash.add(req, "Saved")
        flash.add(req, "Check your inbox", kind="warning")
        return "ok"

    def show(req):
        return " | ".join(f"{m['kind']}:{m['msg']}" for m in flash.pull(req)) or "-"

    app.get("/save", save)
    app.get("/show", show)
    app = CookieSessionMiddleware(app, keys=["k1"])
    return CookieSessionMiddleware(app, name="flash", session_name="flash", keys=["k1"])


async def test_messages_survive_one_read(call):
    app = flash_app()

    saved = await call(app, "/save")
    value = saved.cookie_value("flash")
    assert decode(value) == {"messages": [
        {"kind": "info", "msg": "Saved"},
        {"kind": "warning", "msg": "Check your inbox"},
    ]}
    assert saved.cookie("session") is None

    shown = await call(app, "/show", cookies=signed("flash", value))
    assert shown.body == b"info:Saved | warning:Check your inbox"
    assert shown.cookie("flash").startswith("flash=;")


async def test_pull_without_messages_writes_nothing(call):
    res = await call(flash_app(), "/show")
    assert res.body == b"-"
    assert res.set_cookies == []


async def test_add_after_clear_starts_a_new_flash(call):
    app = App()

    def handler(req):
        req.sessions["flash"] = None
        flash.add(req, "again")
        return "ok"

    app.get("/", handler)
    app = CookieSessionMiddleware(app, name="flash", session_name="flash", keys=["k1"])
    res = await call(app)
    assert decode(res.cookie_value("flash")) == {"messages": [{"kind": "info", "msg": "again"}]}
