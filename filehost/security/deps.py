from __future__ import annotations
"""Request guards. The credential is the user id, posted as form field `user`."""

import logging
from typing import Optional

from fastapi import Depends, Form, HTTPException, Request

from filehost.errors import NotFound
from filehost.models.user import UserRecord
from filehost.services.auth import Auth
from filehost.services.storage import Storage

logger = logging.getLogger(__name__)


def get_auth(request: Request) -> Auth:
    return request.app.state.auth


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


async def auth_user(
    request: Request,
    user: Optional[str] = Form(None),
    auth: Auth = Depends(get_auth),
) -> UserRecord:
    ip = request.client.host if request.client else None
    if not user:
        logger.warning("%s did not fill out their user id", ip)
        raise HTTPException(status_code=401, detail="you must enter your own user ID")
    try:
        return await auth.get_user_by_id(user)
    except NotFound:
        logger.warning("invalid user id from %s", ip)
        raise HTTPException(status_code=401, detail="Unauthorized")


async def admin_guard(request: Request, user: UserRecord = Depends(auth_user)) -> UserRecord:
    if not user.is_admin():
        ip = request.client.host if request.client else None
        logger.warning("unauthorized admin attempt from %s: %s", user.id, ip)
        raise HTTPException(status_code=401, detail="you are not an admin")
    return user


async def upload_guard(request: Request, user: UserRecord = Depends(auth_user)) -> UserRecord:
    if not user.can_upload():
        ip = request.client.host if request.client else None
        logger.warning("unauthorized upload attempt from %s: %s", user.id, ip)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
