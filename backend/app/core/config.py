"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Video Transcoding API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./videos.db"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None

    # CORS
    CORS_ORIGINS: list[str] = []

    # Blob storage (S3 or any S3-compatible endpoint such as MinIO)
    STORAGE_BUCKET: str = "videos"
    STORAGE_REGION: str = "us-east-1"
    STORAGE_ACCESS_KEY: Optional[str] = None
    STORAGE_SECRET_KEY: Optional[str] = None
    STORAGE_ENDPOINT_URL: Optional[str] = None
    UPLOAD_URL_TTL_SECONDS: int = 3600
    DOWNLOAD_URL_TTL_SECONDS: int = 3600

    # History log (DynamoDB)
    HISTORY_TABLE_NAME: str = "video-history"
    HISTORY_REGION: Optional[str] = None
    HISTORY_ENDPOINT_URL: Optional[str] = None
    HISTORY_SORT_KEY_PREFIX: str = "Video"

    # Encoder
    FFMPEG_PATH: str = "ffmpeg"
    ENCODE_TIMEOUT_SECONDS: float = 1800.0
    ENCODE_CHUNK_SIZE: int = 1024 * 1024
    TRANSCODE_TMP_DIR: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
