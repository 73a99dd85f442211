from __future__ import annotations
from datetime import datetime, timezone

_UNITS = ["B", "kB", "MB", "GB", "TB", "PB"]


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def pretty_bytes(n: int) -> str:
    """Human readable size with SI (1000-based) units, e.g. ``1.5 kB``."""
    if n is None or n < 0:
        return "? B"
    if n < 1000:
        return f"{n} B"
    value = float(n)
    unit = 0
    while value >= 1000 and unit < len(_UNITS) - 1:
        value /= 1000
        unit += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[unit]}"


def plural(n: int, singular: str = "", suffix: str = "s") -> str:
    return singular if n == 1 else suffix
