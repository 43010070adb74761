"""Test the cookie-session command line tools."""
import json

from cookie_session.cli import main
from cookie_session.codec import encode
from cookie_session.cookies import Keygrip


def test_gensecret(capsys):
    assert main(["gensecret"]) == 0
    first = capsys.readouterr().out.strip()
    main(["gensecret"])
    second = capsys.readouterr().out.strip()
    assert len(first) >= 40
    assert first != second


def test_encode_and_decode(capsys):
    assert main(["encode", '{"user": "a"}']) == 0
    value = capsys.readouterr().out.strip()
    assert value == encode({"user": "a"})

    assert main(["decode", value]) == 0
    assert json.loads(capsys.readouterr().out) == {"user": "a"}


def test_encode_rejects_non_objects(capsys):
    assert main(["encode", "[1, 2]"]) == 2
    assert main(["encode", "{nope"]) == 2


def test_decode_bad_value(capsys):
    assert main(["decode", "%%%"]) == 2
    assert "cannot decode" in capsys.readouterr().out


def test_sign_matches_keygrip(capsys):
    assert main(["sign", "session", "e30=", "--key", "new", "--key", "old"]) == 0
    assert capsys.readouterr().out.strip() == Keygrip(["new"]).sign("session=e30=")


def test_version(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.startswith("cookie-session")


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out
