from __future__ import annotations
"""UserRecord and its stored document schema.

Stored document (collection: users)
- v: int (schema version, currently 1)
- id: str (doubles as the login credential)
- name: str
- privs: list[str] (insertion order kept; "*" grants everything)
- create_time: int (epoch ms)
- delete_time: int | None
- deleted: bool (reserved, nothing sets it yet)
- ips: dict[str, int] (observed client ips, informational)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from filehost.errors import RecordSchemaError

USER_SCHEMA_VERSION = 1

WILDCARD_PRIV = "*"
PRIV_ADMIN = "admin"
PRIV_UPLOAD = "upload"


class UserDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    v: Literal[1] = USER_SCHEMA_VERSION
    id: str
    name: str
    privs: List[str]
    create_time: int
    delete_time: Optional[int] = None
    deleted: bool = False
    ips: Dict[str, int] = {}


@dataclass
class UserRecord:
    id: str
    name: str
    privs: List[str] = field(default_factory=list)
    create_time: int = 0
    delete_time: Optional[int] = None
    deleted: bool = False
    ips: Dict[str, int] = field(default_factory=dict)

    def has_priv(self, priv: str) -> bool:
        return priv in self.privs or WILDCARD_PRIV in self.privs

    def can_upload(self) -> bool:
        return self.has_priv(PRIV_UPLOAD)

    def is_admin(self) -> bool:
        return self.has_priv(PRIV_ADMIN)

    def to_document(self) -> Dict[str, Any]:
        doc = UserDocument(
            id=self.id,
            name=self.name,
            privs=list(self.privs),
            create_time=self.create_time,
            delete_time=self.delete_time,
            deleted=self.deleted,
            ips=dict(self.ips),
        )
        return doc.model_dump()

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserRecord":
        try:
            doc = UserDocument.model_validate(document)
        except PydanticValidationError as e:
            raise RecordSchemaError(f"malformed user document: {e}") from e
        return cls(
            id=doc.id,
            name=doc.name,
            privs=list(doc.privs),
            create_time=doc.create_time,
            delete_time=doc.delete_time,
            deleted=doc.deleted,
            ips=dict(doc.ips),
        )
