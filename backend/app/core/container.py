"""Service container.

Holds the long-lived clients (database engine, blob store, history table,
encoder) and the history clock for one application instance. Built once at
startup and stored on ``app.state``; request handlers reach it through
``app.core.dependencies``.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from app.core.config import Settings, settings as default_settings
from app.core.database import Database
from app.core.storage import BlobStore, S3BlobStore, StorageConfig
from app.modules.history.models import MonotonicMillisClock
from app.modules.history.repository import DynamoHistoryLog, HistoryLog
from app.modules.transcoding.ffmpeg import FFmpegEncoder

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    database: Database
    blobs: BlobStore
    history_log: HistoryLog
    encoder: FFmpegEncoder
    settings: Settings
    # One clock per process keeps history timestamps strictly increasing
    history_clock: MonotonicMillisClock = field(default_factory=MonotonicMillisClock)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ServiceContainer":
        """Wire the production clients from configuration."""
        settings = settings or default_settings
        blobs = S3BlobStore(
            StorageConfig(
                bucket=settings.STORAGE_BUCKET,
                region=settings.STORAGE_REGION,
                access_key=settings.STORAGE_ACCESS_KEY,
                secret_key=settings.STORAGE_SECRET_KEY,
                endpoint_url=settings.STORAGE_ENDPOINT_URL,
            )
        )
        history_log = DynamoHistoryLog.from_settings(
            table_name=settings.HISTORY_TABLE_NAME,
            region=settings.HISTORY_REGION,
            endpoint_url=settings.HISTORY_ENDPOINT_URL,
        )
        encoder = FFmpegEncoder(
            ffmpeg_path=settings.FFMPEG_PATH,
            timeout=settings.ENCODE_TIMEOUT_SECONDS,
            tmp_dir=settings.TRANSCODE_TMP_DIR,
        )
        return cls(
            database=Database(settings.DATABASE_URL, echo=settings.DEBUG),
            blobs=blobs,
            history_log=history_log,
            encoder=encoder,
            settings=settings,
        )

    async def startup(self) -> None:
        await self.database.create_all()
        logger.info("Service container started")

    async def shutdown(self) -> None:
        await self.blobs.close()
        await self.database.dispose()
        logger.info("Service container stopped")
