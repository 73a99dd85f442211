from __future__ import annotations
"""FileRecord: metadata for one stored upload, plus its stored document schema.

Stored document (collection: files)
- v: int (schema version, currently 1)
- id: str (public token and record key)
- name: str (original upload filename, display only)
- mime_type: str
- size: int (bytes, from stat after the move into storage)
- upload_time: int (epoch ms)
- delete_time: int | None
- deleted: bool
- uploader_ip: str | None

The on-disk path is never stored; it is always storage_dir/<id>.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import aiofiles
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from filehost.errors import RecordSchemaError, StorageIOError
from filehost.mime import DEFAULT_MIME

logger = logging.getLogger(__name__)

FILE_SCHEMA_VERSION = 1


class FileDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    v: Literal[1] = FILE_SCHEMA_VERSION
    id: str
    name: str
    mime_type: str = DEFAULT_MIME
    size: int
    upload_time: int
    delete_time: Optional[int] = None
    deleted: bool = False
    uploader_ip: Optional[str] = None


@dataclass
class FileRecord:
    id: str
    name: str
    storage_dir: Path
    mime_type: str = DEFAULT_MIME
    size: int = -1
    upload_time: int = 0
    delete_time: Optional[int] = None
    deleted: bool = False
    uploader_ip: Optional[str] = None

    @property
    def path(self) -> Path:
        return Path(self.storage_dir) / self.id

    def is_visible(self) -> bool:
        return not self.deleted

    def get_public_url(self) -> str:
        return "/" + self.id

    async def get_buffer(self) -> bytes:
        """Read the whole stored file into memory."""
        try:
            async with aiofiles.open(self.path, "rb") as f:
                data = await f.read()
        except OSError as e:
            logger.warning("%s: could not read storage file '%s': %s", self.id, self.path, e)
            raise StorageIOError(f"could not read stored bytes for {self.id}") from e
        return data

    def to_document(self) -> Dict[str, Any]:
        doc = FileDocument(
            id=self.id,
            name=self.name,
            mime_type=self.mime_type,
            size=self.size,
            upload_time=self.upload_time,
            delete_time=self.delete_time,
            deleted=self.deleted,
            uploader_ip=self.uploader_ip,
        )
        return doc.model_dump()

    @classmethod
    def from_document(cls, document: Dict[str, Any], storage_dir: Path) -> "FileRecord":
        try:
            doc = FileDocument.model_validate(document)
        except PydanticValidationError as e:
            raise RecordSchemaError(f"malformed file document: {e}") from e
        return cls(
            id=doc.id,
            name=doc.name,
            storage_dir=Path(storage_dir),
            mime_type=doc.mime_type,
            size=doc.size,
            upload_time=doc.upload_time,
            delete_time=doc.delete_time,
            deleted=doc.deleted,
            uploader_ip=doc.uploader_ip,
        )
