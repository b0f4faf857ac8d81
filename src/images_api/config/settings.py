# src/images_api/config/settings.py
import json
from typing import Annotated, List, Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from database.local import STORE_BACKENDS


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Values passed to the constructor (tests, CLI)
    2. Environment variables
    3. .env file (if exists)
    4. Default values in this class

    Usage:
        from images_api.config.settings import get_settings
        settings = get_settings()
        upload_dir = settings.upload_dir
    """

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Interface uvicorn binds to"
    )

    port: int = Field(
        default=3000,
        description="Listen port"
    )

    # Metadata store
    store_backend: str = Field(
        default="mongo",
        description="Image store engine: mongo, sqlite or memory"
    )

    mongo_uri: str = Field(
        default="mongodb://localhost:27017/bilderDB",
        description="MongoDB connection string"
    )

    mongo_collection: str = Field(
        default="images",
        description="Collection holding image documents"
    )

    mongo_timeout_ms: int = Field(
        default=5000,
        gt=0,
        description="Server selection timeout for MongoDB operations"
    )

    sqlite_path: str = Field(
        default="images.db",
        description="Database file for the sqlite backend"
    )

    # Blob storage
    upload_dir: str = Field(
        default="uploads",
        description="Directory uploaded images are written to"
    )

    public_prefix: str = Field(
        default="/uploads",
        description="URL prefix the upload directory is served under"
    )

    max_file_size: int = Field(
        default=2 * 1024 * 1024,
        gt=0,
        description="Largest accepted image in bytes"
    )

    max_files: int = Field(
        default=10,
        gt=0,
        description="Most images accepted in one upload request"
    )

    # HTTP
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default=["*"],
        description="Origins allowed to call the API, comma separated or a JSON list"
    )

    static_dir: Optional[str] = Field(
        default=None,
        description="Optional frontend directory served at /"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('store_backend')
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Validate the store backend is one of the supported engines."""
        v = v.lower()
        if v not in STORE_BACKENDS:
            raise ValueError(f"Invalid store_backend: {v}. Must be one of {list(STORE_BACKENDS)}")
        return v

    @field_validator('public_prefix')
    @classmethod
    def normalize_public_prefix(cls, v: str) -> str:
        """Keep exactly one leading slash and no trailing slash."""
        return "/" + v.strip("/")

    @field_validator('cors_origins', mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        """Accept `*`, `https://a.example,https://b.example` or a JSON list."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def get_environment_dict(self) -> dict:
        """Get configuration as a dictionary of environment variables.

        Returns:
            Dictionary of environment variables
        """
        return {
            'PORT': str(self.port),
            'HOST': self.host,
            'STORE_BACKEND': self.store_backend,
            'MONGO_URI': self.mongo_uri,
            'MONGO_COLLECTION': self.mongo_collection,
            'SQLITE_PATH': self.sqlite_path,
            'UPLOAD_DIR': self.upload_dir,
            'PUBLIC_PREFIX': self.public_prefix,
            'MAX_FILE_SIZE': str(self.max_file_size),
            'MAX_FILES': str(self.max_files),
            'CORS_ORIGINS': ','.join(self.cors_origins),
            'STATIC_DIR': self.static_dir or '',
            'LOG_LEVEL': self.log_level,
        }

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
