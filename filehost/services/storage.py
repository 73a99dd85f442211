from __future__ import annotations
"""
Storage engine: ingest landed uploads and resolve ids back to FileRecords.

add_file, per record and strictly in this order:
  1) reject declared sizes over the limit (before touching the filesystem)
  2) generate an id; destination is storage_dir/<id>
  3) copy (preserve_source) or rename the source into place
  4) stat the destination; the real size replaces the declared one
  5) insert the document into the files collection
  6) cache the record
A failure in 3/4 persists nothing. A failure in 5 leaves the bytes on disk
unreferenced; nothing cleans those up.
"""

import asyncio
import errno
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles
import aiofiles.os
from pymongo.errors import PyMongoError

from filehost import ids, mime
from filehost.config import Settings
from filehost.errors import (
    FilehostError,
    NotFound,
    RecordSchemaError,
    UploadError,
    ValidationError,
    UPLOAD_IO_FAILURE,
    UPLOAD_PERSISTENCE_FAILURE,
    UPLOAD_TOO_LARGE,
)
from filehost.models.file_record import FileRecord
from filehost.repositories import files_repo
from filehost.services.cache import FileCache
from filehost.util import now_ms, pretty_bytes

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB chunks


@dataclass
class UploadDescriptor:
    original_filename: str
    declared_size: Optional[int]
    source_path: str
    preserve_source: bool = False
    uploader_ip: Optional[str] = None


@dataclass
class UploadOutcome:
    descriptor: UploadDescriptor
    status: str  # "ok" | "error"
    file: Optional[FileRecord] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


async def _copy_file(src: str, dst: Path) -> None:
    async with aiofiles.open(src, "rb") as rd, aiofiles.open(dst, "wb") as wr:
        while True:
            chunk = await rd.read(CHUNK_SIZE)
            if not chunk:
                break
            await wr.write(chunk)


async def _move_file(src: str, dst: Path) -> None:
    try:
        await aiofiles.os.rename(src, dst)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        # temp dir on another filesystem: fall back to copy + unlink
        await _copy_file(src, dst)
        await aiofiles.os.remove(src)


class Storage:
    def __init__(
        self,
        storage_dir: str,
        upload_max_size: int,
        cache: Optional[FileCache] = None,
    ):
        self.storage_dir = Path(storage_dir)
        self.upload_max_size = upload_max_size
        self.cache = cache if cache is not None else FileCache()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Storage":
        return cls(
            storage_dir=settings.storage_dir,
            upload_max_size=settings.upload_max_size,
            cache=FileCache(settings.max_cache, settings.cache_evict_batch),
        )

    def ensure_storage_dir(self) -> None:
        if not self.storage_dir.exists():
            logger.info("first run? making directory '%s'", self.storage_dir)
            os.makedirs(self.storage_dir, exist_ok=True)

    # ---- add ----

    async def _move_into_storage(self, record: FileRecord, descriptor: UploadDescriptor) -> None:
        src = descriptor.source_path
        dst = record.path
        try:
            if descriptor.preserve_source:
                logger.debug("%s: copying '%s' to '%s' (original kept)", record.id, src, dst)
                await _copy_file(src, dst)
            else:
                logger.debug("%s: renaming '%s' to '%s'", record.id, src, dst)
                await _move_file(src, dst)
        except OSError as e:
            logger.warning("%s: file copy/rename failed: %s", record.id, e)
            raise UploadError(UPLOAD_IO_FAILURE, "could not store file") from e

    async def _stat_size(self, record: FileRecord) -> int:
        try:
            st = await aiofiles.os.stat(record.path)
        except OSError as e:
            logger.warning("%s: stat failed on storage file '%s': %s", record.id, record.path, e)
            raise UploadError(UPLOAD_IO_FAILURE, "could not read stored file") from e
        return st.st_size

    async def add_file(self, descriptor: UploadDescriptor) -> FileRecord:
        if descriptor.declared_size is None or descriptor.declared_size < 0:
            raise ValidationError("declared size is required")
        if descriptor.declared_size > self.upload_max_size:
            raise UploadError(UPLOAD_TOO_LARGE, "file too large")

        record = FileRecord(
            id=ids.generate(),
            name=descriptor.original_filename,
            storage_dir=self.storage_dir,
            mime_type=mime.lookup(descriptor.original_filename),
            size=descriptor.declared_size,
            uploader_ip=descriptor.uploader_ip,
        )
        logger.debug("generated id for file '%s': %s", record.name, record.id)

        await self._move_into_storage(record, descriptor)
        record.size = await self._stat_size(record)
        record.upload_time = now_ms()

        try:
            await files_repo.insert_file(record.to_document())
        except PyMongoError as e:
            logger.exception("%s: database insert failed, stored bytes are orphaned", record.id)
            raise UploadError(UPLOAD_PERSISTENCE_FAILURE, "could not save file metadata") from e
        logger.debug("%s: file metadata inserted into database", record.id)

        await self.cache.put(record)
        logger.info(
            "stored file %s ('%s': %s) from %s",
            record.id, record.name, pretty_bytes(record.size), record.uploader_ip,
        )
        return record

    async def _add_one(self, descriptor: UploadDescriptor) -> UploadOutcome:
        try:
            record = await self.add_file(descriptor)
        except UploadError as e:
            return UploadOutcome(descriptor, "error", reason=e.reason, message=e.message)
        except FilehostError as e:
            return UploadOutcome(descriptor, "error", reason="invalid", message=str(e))
        return UploadOutcome(descriptor, "ok", file=record)

    async def add_files(self, descriptors: Sequence[UploadDescriptor]) -> List[UploadOutcome]:
        """Add several uploads independently; one failure never aborts the rest."""
        results = await asyncio.gather(
            *(self._add_one(d) for d in descriptors), return_exceptions=True
        )
        outcomes: List[UploadOutcome] = []
        for descriptor, result in zip(descriptors, results):
            if isinstance(result, BaseException):
                logger.error(
                    "upload of '%s' failed unexpectedly",
                    descriptor.original_filename,
                    exc_info=result,
                )
                outcomes.append(
                    UploadOutcome(descriptor, "error", reason="unknown", message="unknown error")
                )
            else:
                outcomes.append(result)
        return outcomes

    # ---- lookup ----

    async def get_file_by_id(self, file_id: str) -> FileRecord:
        cached = self.cache.get(file_id)
        if cached is not None:
            logger.debug("used cached file %s", file_id)
            return cached

        logger.debug("fetching file %s", file_id)
        try:
            doc = await files_repo.find_visible_file(file_id)
        except PyMongoError:
            logger.exception("%s: metadata lookup failed", file_id)
            raise NotFound(file_id)
        if not doc:
            raise NotFound(file_id)

        try:
            record = FileRecord.from_document(doc, self.storage_dir)
        except RecordSchemaError:
            logger.exception("%s: stored document does not match the file schema", file_id)
            raise NotFound(file_id)

        await self.cache.put(record)
        return record
