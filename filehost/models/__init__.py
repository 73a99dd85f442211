from filehost.models.file_record import FileDocument, FileRecord
from filehost.models.user import UserDocument, UserRecord

__all__ = ["FileDocument", "FileRecord", "UserDocument", "UserRecord"]
