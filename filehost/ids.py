from __future__ import annotations
import re
import secrets

# 7 random bytes -> 10 url-safe base64 characters (56 bits).
_ID_BYTES = 7
_ID_RE = re.compile(r"^[A-Za-z0-9_-]{7,14}$")


def generate() -> str:
    """Return a fresh opaque id, used as both the public token and the record key."""
    return secrets.token_urlsafe(_ID_BYTES)


def is_valid(value: str) -> bool:
    return bool(value) and _ID_RE.match(value) is not None
