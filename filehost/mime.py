from __future__ import annotations
"""Mime resolution and the inline/attachment serving policy.

Only types on SAFE_INLINE_MIME are ever served inline with their real
content type. Everything else, markup and script included, goes out as a
generic binary attachment so stored content cannot run in the browser.
"""

import mimetypes
import re
from typing import FrozenSet, Tuple

DEFAULT_MIME = "application/octet-stream"
FORCED_DOWNLOAD_MIME = "application/x-octet-stream"

INLINE = "inline"
ATTACHMENT = "attachment"

# text/html, application/xhtml+xml and javascript stay off this list on purpose.
SAFE_INLINE_MIME: FrozenSet[str] = frozenset({
    "text/plain",
    "image/png",
    "image/jpeg",
    "image/pjpeg",
    "image/webp",
    "image/gif",
    "image/tiff",
    "application/json",
    "application/pdf",
    "video/mpeg",
    "video/mj2",
    "video/mp4",
    "video/ogg",
    "video/webm",
    "video/quicktime",
    "video/h261",
    "video/h263",
    "video/h264",
})

_DISP_SAFE_RE = re.compile(r'[\x00-\x1f\x7f"\\]')  # strip controls, quotes, backslashes


def lookup(filename: str) -> str:
    """Resolve a mime type from the extension of an (untrusted) upload filename."""
    mt, _ = mimetypes.guess_type(filename or "", strict=False)
    return mt or DEFAULT_MIME


def is_safe_inline(mime_type: str) -> bool:
    return (mime_type or "").lower() in SAFE_INLINE_MIME


def serve_policy(mime_type: str) -> Tuple[str, str]:
    """Return ``(content_type, disposition)`` for a stored mime type."""
    if is_safe_inline(mime_type):
        return mime_type.lower(), INLINE
    return FORCED_DOWNLOAD_MIME, ATTACHMENT


def sanitize_filename(name: str) -> str:
    if not name:
        return "file"
    name = _DISP_SAFE_RE.sub("", name).strip()
    return name or "file"


def _percent_encode(b: bytes) -> str:
    out = []
    for c in b:
        if (
            0x30 <= c <= 0x39 or  # 0-9
            0x41 <= c <= 0x5A or  # A-Z
            0x61 <= c <= 0x7A or  # a-z
            c in (0x2D, 0x2E, 0x5F, 0x7E)  # - . _ ~
        ):
            out.append(chr(c))
        else:
            out.append(f"%{c:02X}")
    return "".join(out)


def content_disposition(disposition: str, filename: str) -> str:
    safe = sanitize_filename(filename)
    # the plain filename= parameter must stay latin-1 for the header to encode
    ascii_name = safe.encode("ascii", "replace").decode("ascii")
    filename_star = "UTF-8''" + _percent_encode(safe.encode("utf-8"))
    return f'{disposition}; filename="{ascii_name}"; filename*={filename_star}'
