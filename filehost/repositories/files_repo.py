from __future__ import annotations
"""
files_repo.py — helpers for the 'files' collection
"""

from typing import Optional, Dict, Any
from filehost.config import settings
from filehost.db.mongo import get_db

def _files():
    return get_db()[settings.files_collection]

def _strip_oid(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    out = dict(doc)
    out.pop("_id", None)
    return out

async def insert_file(doc: Dict[str, Any]) -> None:
    # insert_one adds _id to the dict it is given; keep the caller's copy clean
    await _files().insert_one(dict(doc))

async def find_visible_file(file_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a non-deleted file document by its public id."""
    doc = await _files().find_one({"id": file_id, "deleted": False})
    return _strip_oid(doc)
