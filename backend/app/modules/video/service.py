"""Video service for business logic.

Implements upload descriptor issuing and the read side of the video catalogue.
"""

import logging
import os
import re
import secrets
import time

from pydantic import ValidationError as PydanticValidationError

from app.core.errors import NotFoundError, StorageError, ValidationError
from app.core.logging import log_error, log_info
from app.core.metrics import UPLOADS_REQUESTED_TOTAL
from app.core.storage import BlobStore, PresignedRequest
from app.modules.history.service import HistoryService
from app.modules.video.models import Video, VideoStatus
from app.modules.video.repository import VideoRepository
from app.modules.video.schemas import UploadRequest, VideoResponse

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    """Reduce a client filename to a safe object-key suffix."""
    name = os.path.basename(filename.replace("\\", "/"))
    name = _UNSAFE_KEY_CHARS.sub("_", name).strip("._")
    return name or "video"


def build_source_key(filename: str) -> str:
    """Time-ordered key for a new upload.

    The random token keeps same-millisecond uploads of the same filename apart.
    """
    millis = time.time_ns() // 1_000_000
    return f"{millis}-{secrets.token_hex(4)}-{sanitize_filename(filename)}"


def _format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"])
        parts.append(f"{field}: {item['msg']}")
    return "; ".join(parts)


class UploadCoordinator:
    """Issues upload descriptors and registers the pending video."""

    def __init__(
        self,
        videos: VideoRepository,
        blobs: BlobStore,
        history: HistoryService,
        upload_ttl: int = 3600,
    ):
        self.videos = videos
        self.blobs = blobs
        self.history = history
        self.upload_ttl = upload_ttl

    async def request_upload(
        self,
        owner: str,
        filename: str,
        content_type: str,
        description: str,
    ) -> tuple[PresignedRequest, str]:
        """Prepare a direct-to-storage upload.

        Returns:
            (upload descriptor, source key)

        Raises:
            ValidationError: Missing or malformed input; nothing written
            StorageError: A store write failed; no descriptor is returned
        """
        try:
            request = UploadRequest(
                filename=filename, content_type=content_type, description=description
            )
        except PydanticValidationError as e:
            UPLOADS_REQUESTED_TOTAL.labels(outcome="invalid").inc()
            raise ValidationError(_format_validation_error(e)) from e

        source_key = build_source_key(request.filename)
        descriptor = await self.blobs.presign_upload(
            source_key, request.content_type, self.upload_ttl
        )

        try:
            video = await self.videos.create(
                email=owner,
                file_path=source_key,
                description=request.description,
                status=VideoStatus.UPLOADING,
            )
            await self._record_or_compensate(video, owner, request)
        except StorageError:
            UPLOADS_REQUESTED_TOTAL.labels(outcome="storage_error").inc()
            raise

        UPLOADS_REQUESTED_TOTAL.labels(outcome="issued").inc()
        log_info(logger, "Upload descriptor issued", source_key=source_key, video_id=video.id)
        return descriptor, source_key

    async def _record_or_compensate(self, video: Video, owner: str, request: UploadRequest) -> None:
        try:
            await self.history.record(
                owner, video.file_path, request.description, VideoStatus.UPLOADING
            )
        except StorageError as e:
            log_error(logger, "History append failed, removing pending row", e, video_id=video.id)
            await self.videos.delete(video)
            raise


class VideoQueryService:
    """Read side: listings and playable URLs."""

    def __init__(self, videos: VideoRepository, blobs: BlobStore, url_ttl: int = 3600):
        self.videos = videos
        self.blobs = blobs
        self.url_ttl = url_ttl

    async def list_videos(self, owner: str) -> list[VideoResponse]:
        """Every row owned by ``owner``, originals and transcodes alike."""
        rows = await self.videos.list_by_owner(owner)
        result = []
        for row in rows:
            transcoded_url = None
            if row.transcoded_path:
                transcoded_url = await self.blobs.presign_download(row.transcoded_path, self.url_ttl)
            result.append(
                VideoResponse(
                    id=row.id,
                    original_url=await self.blobs.presign_download(row.file_path, self.url_ttl),
                    transcoded_url=transcoded_url,
                    description=row.video_description,
                    quality=row.quality,
                    status=VideoStatus(row.status),
                )
            )
        return result

    async def get_playable_url(self, owner: str, video_id: int, as_attachment: bool = False) -> str:
        """Time-limited URL for the artifact a row stands for.

        Another owner's video is reported as missing.
        """
        video = await self.videos.get_by_id(video_id)
        if video is None or video.email != owner:
            raise NotFoundError(f"Video {video_id} not found")
        return await self.blobs.presign_download(
            video.playable_key, self.url_ttl, as_attachment=as_attachment
        )
