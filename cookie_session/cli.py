# cookie_session/cli.py
from __future__ import annotations

import argparse
import json
import secrets
from typing import Optional

from cookie_session.codec import DecodeError, decode, encode
from cookie_session.cookies import Keygrip


def cmd_gensecret() -> int:
    print(secrets.token_urlsafe(32))
    return 0


def cmd_encode(payload: str) -> int:
    try:
        body = json.loads(payload)
    except ValueError as exc:
        print(f"invalid JSON: {exc}")
        return 2
    if not isinstance(body, dict):
        print("session payload must be a JSON object")
        return 2
    print(encode(body))
    return 0


def cmd_decode(value: str) -> int:
    """Show the JSON stored in a session cookie value."""
    try:
        body = decode(value)
    except DecodeError as exc:
        print(f"cannot decode: {exc}")
        return 2
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0


def cmd_sign(name: str, value: str, keys: list[str]) -> int:
    """Print the value of the NAME.sig companion cookie."""
    print(Keygrip(keys).sign(f"{name}={value}"))
    return 0


def cmd_version() -> int:
    import importlib.metadata
    try:
        version = importlib.metadata.version("cookie-session")
        print(f"cookie-session {version}")
    except importlib.metadata.PackageNotFoundError:
        print("cookie-session (development version)")
    return 0


# ---------- MAIN --------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="cookie-session", description="Cookie session tools")
    p.add_argument("--version", action="store_true", help="Show version and exit")

    sub = p.add_subparsers(dest="cmd", required=False)

    sub.add_parser("gensecret", help="Generate a random signing key")

    p_enc = sub.add_parser("encode", help="Encode a JSON object as a session cookie value")
    p_enc.add_argument("json", help='e.g. \'{"user": "a"}\'')

    p_dec = sub.add_parser("decode", help="Decode a session cookie value to JSON")
    p_dec.add_argument("value")

    p_sign = sub.add_parser("sign", help="Compute the NAME.sig cookie for a value")
    p_sign.add_argument("name", help="Cookie name, e.g. session")
    p_sign.add_argument("value", help="Cookie value")
    p_sign.add_argument("--key", action="append", required=True,
                        help="Signing key; repeat for rotation, newest first")

    args = p.parse_args(argv)

    if args.version:
        return cmd_version()

    if args.cmd == "gensecret":
        return cmd_gensecret()
    if args.cmd == "encode":
        return cmd_encode(args.json)
    if args.cmd == "decode":
        return cmd_decode(args.value)
    if args.cmd == "sign":
        return cmd_sign(args.name, args.value, args.key)

    p.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
