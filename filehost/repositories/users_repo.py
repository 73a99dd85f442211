from __future__ import annotations
"""users_repo.py — helpers for the `users` collection.

Schema: see filehost.models.user. Lookups are by `id` (the credential)
or by `name`; `name` carries a unique index.
"""

from typing import Optional, Dict, Any, List

from filehost.config import settings
from filehost.db.mongo import get_db


def _users():
    return get_db()[settings.users_collection]


def _strip_oid(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    out = dict(doc)
    out.pop("_id", None)
    return out


async def insert_user(doc: Dict[str, Any]) -> None:
    await _users().insert_one(dict(doc))


async def find_user(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    doc = await _users().find_one(query)
    return _strip_oid(doc)


async def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    return await find_user({"id": user_id})


async def get_user_by_name(name: str) -> Optional[Dict[str, Any]]:
    return await find_user({"name": name})


async def list_users() -> List[Dict[str, Any]]:
    cur = _users().find({}).sort([("create_time", 1)])
    out: List[Dict[str, Any]] = []
    async for d in cur:
        out.append(_strip_oid(d))
    return out
