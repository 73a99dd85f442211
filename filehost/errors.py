from __future__ import annotations
"""Error taxonomy shared by the storage and auth engines.

Routes translate these into HTTP status codes; the engines never raise
HTTPException themselves.
"""

from typing import Optional


class FilehostError(Exception):
    """Base class for every error raised by the core."""


class ValidationError(FilehostError):
    """Bad input shape: empty name, unknown privilege, missing declared size."""


class NotFound(FilehostError):
    """Opaque miss. Never says whether the record is absent, deleted or unreachable."""


class StorageIOError(FilehostError):
    """Metadata exists but the bytes on disk cannot be read."""


class RecordSchemaError(FilehostError):
    """A stored document does not match the versioned record schema."""


UPLOAD_TOO_LARGE = "too_large"
UPLOAD_IO_FAILURE = "io_failure"
UPLOAD_PERSISTENCE_FAILURE = "persistence_failure"


class UploadError(FilehostError):
    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        self.message = message or reason.replace("_", " ")
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"UploadError(reason={self.reason!r}, message={self.message!r})"
