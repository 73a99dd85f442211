from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    app_env: str = Field("dev", alias="APP_ENV")
    app_host: str = Field("0.0.0.0", alias="APP_HOST")
    app_port: int = Field(6925, alias="APP_PORT")

    mongodb_uri: str = Field(..., alias="MONGODB_URI")
    mongodb_db: str = Field("filehost", alias="MONGODB_DB")
    files_collection: str = Field("files", alias="FILES_COLLECTION")
    users_collection: str = Field("users", alias="USERS_COLLECTION")

    # Uploaded bytes live in storage_dir/<id>; multipart bodies are spooled
    # into upload_tmp_dir first and then renamed into storage.
    storage_dir: str = Field("./storage", alias="STORAGE_DIR")
    upload_tmp_dir: str = Field("./uploads", alias="UPLOAD_TMP_DIR")
    upload_max_size: int = Field(30 * 1000 * 1000, alias="UPLOAD_MAX_SIZE")

    max_cache: int = Field(300, alias="MAX_CACHE")
    cache_evict_batch: int = Field(3, alias="CACHE_EVICT_BATCH")

    default_privs: List[str] = Field(["upload"], alias="DEFAULT_PRIVS")

    log_file: str = Field("host.log", alias="LOG_FILE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
