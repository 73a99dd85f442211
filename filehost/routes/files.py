from __future__ import annotations
"""
File upload and retrieval endpoints.

POST /upload  (multipart/form-data)
  form-data:
    - user: str  (required; id of a user holding the `upload` privilege)
    - files: UploadFile[] (one or more)

Behavior:
  1) Spool each part into UPLOAD_TMP_DIR, stopping early once it is over the size limit.
  2) Hand every spooled file to Storage.add_files; each file gets its own outcome.
  3) Remove whatever temp files were not moved into storage.
  4) Respond with one entry per file. A single failed file answers 400.

GET /<id>  or  GET /<id>.<ext>
  Serves the stored bytes. Only allow-listed types go out inline; the rest is
  forced to a binary attachment.
"""

import logging
import os
import re
import uuid
from typing import List, Optional

import aiofiles
import aiofiles.os
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from filehost import mime
from filehost.config import settings
from filehost.errors import NotFound, StorageIOError
from filehost.models.user import UserRecord
from filehost.security.deps import get_storage, upload_guard
from filehost.services.storage import Storage, UploadDescriptor
from filehost.util import pretty_bytes

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

CHUNK_SIZE = 1024 * 1024  # 1MB chunks

_FILE_REF_RE = re.compile(r"^([A-Za-z0-9_-]{7,14})(\.([A-Za-z0-9]+))?$")


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def _spool(upload: UploadFile, tmp_dir: str, max_bytes: int) -> UploadDescriptor:
    os.makedirs(tmp_dir, exist_ok=True)
    tmp_path = os.path.join(tmp_dir, uuid.uuid4().hex)
    total = 0
    try:
        async with aiofiles.open(tmp_path, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    # the storage engine rejects it on the declared size
                    break
                await out.write(chunk)
    finally:
        await upload.close()
    return UploadDescriptor(
        original_filename=upload.filename or "upload.bin",
        declared_size=total,
        source_path=tmp_path,
        preserve_source=False,
    )


async def _discard(path: str) -> None:
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("could not remove temporary upload '%s': %s", path, e)


@router.post("/upload")
async def upload_files(
    request: Request,
    files: List[UploadFile] = File(...),
    user: UserRecord = Depends(upload_guard),
    storage: Storage = Depends(get_storage),
):
    ip = _client_ip(request)
    descriptors = []
    for f in files:
        d = await _spool(f, settings.upload_tmp_dir, storage.upload_max_size)
        d.uploader_ip = ip
        descriptors.append(d)

    outcomes = await storage.add_files(descriptors)

    payload = []
    for outcome in outcomes:
        d = outcome.descriptor
        if outcome.ok:
            rec = outcome.file
            logger.info(
                "%s (%s) uploaded a file: %s ('%s': %s) from %s",
                user.id, user.name, rec.id, rec.name, pretty_bytes(rec.size), ip,
            )
            payload.append({
                "name": d.original_filename,
                "status": "ok",
                "size": rec.size,
                "url": rec.get_public_url(),
                "message": "uploaded",
            })
        else:
            logger.error("%s upload of '%s' failed: %s", ip, d.original_filename, outcome.message)
            await _discard(d.source_path)
            payload.append({
                "name": d.original_filename,
                "status": "error",
                "size": d.declared_size,
                "url": None,
                "message": outcome.message or "unknown error",
            })

    status_code = 200
    if len(payload) == 1 and payload[0]["status"] == "error":
        status_code = 400
    return JSONResponse({"status": "ok", "files": payload}, status_code=status_code)


@router.get("/{file_ref}")
async def serve_file(
    request: Request,
    file_ref: str,
    storage: Storage = Depends(get_storage),
):
    ip = _client_ip(request)
    m = _FILE_REF_RE.match(file_ref)
    if not m:
        raise HTTPException(status_code=404, detail="Not Found")
    file_id = m.group(1)

    try:
        record = await storage.get_file_by_id(file_id)
    except NotFound:
        logger.info("%s tried to view nonexistent file: %s", ip, file_id)
        raise HTTPException(status_code=404, detail="Not Found")

    if not record.is_visible():
        logger.info("%s tried to view deleted file: %s", ip, file_id)
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        buffer = await record.get_buffer()
    except StorageIOError:
        logger.error("%s: metadata exists but stored bytes are missing", file_id)
        raise HTTPException(status_code=404, detail="Not Found")

    content_type, disposition = mime.serve_policy(record.mime_type)
    logger.info("%s: sending '%s' (%s) to %s", file_id, record.name, content_type, ip)

    headers = {
        "Content-Disposition": mime.content_disposition(disposition, record.name),
        "X-Content-Type-Options": "nosniff",
    }
    return Response(content=buffer, media_type=content_type, headers=headers)
