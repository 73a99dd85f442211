from __future__ import annotations
"""Auth engine: user accounts, privilege strings and the bootstrap admin.

Users are never cached: privilege checks always read the current document.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from filehost import ids
from filehost.errors import NotFound, RecordSchemaError, ValidationError
from filehost.models.user import PRIV_ADMIN, PRIV_UPLOAD, WILDCARD_PRIV, UserRecord
from filehost.repositories import users_repo
from filehost.util import now_ms

logger = logging.getLogger(__name__)

VALID_PRIVS = frozenset({PRIV_ADMIN, PRIV_UPLOAD})
ADMIN_NAME = "admin"


@dataclass
class BootstrapResult:
    created: bool
    user: UserRecord


class Auth:
    def __init__(self, default_privs: Optional[Iterable[str]] = None):
        self.default_privs: List[str] = list(default_privs or [PRIV_UPLOAD])

    @staticmethod
    def is_valid_priv(priv: str) -> bool:
        return priv in VALID_PRIVS

    def validate(self, name: Optional[str], privs: Optional[Iterable[str]]) -> List[str]:
        if not name or not name.strip():
            raise ValidationError("that username is too short")
        privs = list(privs or [])
        if not privs:
            raise ValidationError("you must enter at least one privilege")
        for priv in privs:
            if not self.is_valid_priv(priv):
                raise ValidationError(f"invalid privilege: '{priv}'")
        return privs

    async def _insert(self, name: str, privs: List[str]) -> UserRecord:
        user = UserRecord(id=ids.generate(), name=name, privs=privs, create_time=now_ms())
        logger.debug("generated id for user '%s': %s", user.name, user.id)
        try:
            await users_repo.insert_user(user.to_document())
        except DuplicateKeyError as e:
            raise ValidationError(f"user name already taken: '{name}'") from e
        logger.debug("%s: user metadata inserted into database", user.id)
        return user

    async def add_user(self, info: Dict[str, Any]) -> UserRecord:
        """Create a user from ``{"name": ..., "privs": [...]}``.

        Names are unique: the pre-check gives a clean error, the unique index
        on users.name catches concurrent inserts.
        """
        name = (info.get("name") or "").strip()
        privs = self.validate(name, info.get("privs"))
        if await users_repo.get_user_by_name(name):
            raise ValidationError(f"user name already taken: '{name}'")
        return await self._insert(name, privs)

    async def create_admin_user(self) -> UserRecord:
        return await self._insert(ADMIN_NAME, [WILDCARD_PRIV])

    async def bootstrap(self) -> BootstrapResult:
        """Ensure a user named 'admin' exists. Safe to call more than once."""
        try:
            return BootstrapResult(created=False, user=await self.get_user_by_name(ADMIN_NAME))
        except NotFound:
            pass
        try:
            user = await self.create_admin_user()
        except ValidationError:
            # another process won the race
            return BootstrapResult(created=False, user=await self.get_user_by_name(ADMIN_NAME))
        return BootstrapResult(created=True, user=user)

    def _hydrate(self, query_name: str, doc: Optional[Dict[str, Any]]) -> UserRecord:
        if not doc:
            raise NotFound(query_name)
        try:
            return UserRecord.from_document(doc)
        except RecordSchemaError:
            logger.exception("stored user document does not match the user schema")
            raise NotFound(query_name)

    async def get_user_by_id(self, user_id: str) -> UserRecord:
        logger.debug("fetching user by id: %s", user_id)
        if not user_id:
            raise NotFound(user_id)
        try:
            doc = await users_repo.get_user_by_id(user_id)
        except PyMongoError:
            logger.exception("user lookup by id failed")
            raise NotFound(user_id)
        return self._hydrate(user_id, doc)

    async def get_user_by_name(self, name: str) -> UserRecord:
        logger.debug("fetching user by name: %s", name)
        try:
            doc = await users_repo.get_user_by_name(name)
        except PyMongoError:
            logger.exception("user lookup by name failed")
            raise NotFound(name)
        return self._hydrate(name, doc)

    async def get_all_users(self) -> List[UserRecord]:
        docs = await users_repo.list_users()
        users = [UserRecord.from_document(d) for d in docs]
        users.sort(key=lambda u: u.create_time)
        return users
