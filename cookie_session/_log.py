import os, sys, datetime

DEBUG = os.getenv("COOKIE_SESSION_DEBUG") == "1"

def log(*args):
    """Print only when COOKIE_SESSION_DEBUG=1 is set"""
    if not DEBUG:
        return
    ts = datetime.datetime.now().strftime("%H:%M:%S")
    print(f"[cookie-session {ts}]", *args, file=sys.stderr, flush=True)
