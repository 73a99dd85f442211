from fastapi import APIRouter, Depends
from fastapi.responses import Response

from filehost.security.deps import get_storage
from filehost.services.storage import Storage

router = APIRouter(tags=["site"])


@router.get("/healthz")
async def healthz():
    return {"ok": True}


@router.get("/config.js")
async def config_js(storage: Storage = Depends(get_storage)):
    body = "var CONFIG = {upload: {max_size: %d}}" % storage.upload_max_size
    return Response(content=body, media_type="application/javascript")
