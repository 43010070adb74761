# cookie_session/flash.py
# One-shot messages kept in the "flash" session namespace.
FLASH = "flash"

def add(req, message, kind="info"):
    if req.sessions[FLASH] is None:
        req.sessions[FLASH] = {}
    req.sessions[FLASH].setdefault("messages", []).append({"kind": kind, "msg": message})

def pull(req):
    s = req.sessions[FLASH]
    out = list(s.get("messages", [])) if s else []
    if out:
        # clearing deletes the cookie on this response
        req.sessions[FLASH] = None
    return out
