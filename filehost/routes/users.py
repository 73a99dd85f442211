from __future__ import annotations
"""User administration endpoints (admin privilege required).

- POST /add    form: user, name, privs ("upload, admin"; empty -> DEFAULT_PRIVS)
- POST /users  form: user  -> every user, oldest first
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from pymongo.errors import PyMongoError

from filehost.errors import ValidationError
from filehost.models.user import UserRecord
from filehost.security.deps import admin_guard, get_auth
from filehost.services.auth import Auth

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

_PRIV_SPLIT_RE = re.compile(r",\s*")


@router.post("/add")
async def add_user(
    request: Request,
    name: str = Form(""),
    privs: Optional[str] = Form(None),
    admin: UserRecord = Depends(admin_guard),
    auth: Auth = Depends(get_auth),
):
    ip = request.client.host if request.client else None
    if not privs:
        priv_list = list(auth.default_privs)
        logger.debug("no privileges specified, using default %s", priv_list)
    else:
        priv_list = [p for p in _PRIV_SPLIT_RE.split(privs.strip()) if p]

    try:
        user = await auth.add_user({"name": name, "privs": priv_list})
    except ValidationError as e:
        logger.warning("rejected new user '%s': %s", name, e)
        raise HTTPException(status_code=400, detail=str(e))
    except PyMongoError:
        logger.exception("could not add user")
        raise HTTPException(status_code=500, detail="user add failed")

    logger.info(
        "added new user %s (%s) (authorized by %s, from %s)", user.id, user.name, admin.id, ip
    )
    return {"message": f"new user: {user.id} ({user.name})", "id": user.id, "name": user.name}


@router.post("/users")
async def list_users(
    admin: UserRecord = Depends(admin_guard),  # noqa: ARG001
    auth: Auth = Depends(get_auth),
):
    users = await auth.get_all_users()
    return {
        "users": [
            {
                "id": u.id,
                "name": u.name,
                "privs": ", ".join(u.privs),
                "create_time": u.create_time,
            }
            for u in users
        ]
    }
