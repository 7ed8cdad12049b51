"""Transcode orchestration.

Moves one source video through blob storage, the encoder and back, then
records the result in the metadata table and the history log. Each step fails
fast; nothing is retried. The encoder's local output file is released on
every exit path once it exists.
"""

import logging
import secrets
import time
from typing import Optional

from app.core.errors import AuthorizationError, NotFoundError, ServiceError, StorageError
from app.core.logging import log_error, log_info, log_warning
from app.core.metrics import TRANSCODE_DURATION_SECONDS, TRANSCODE_JOBS_TOTAL
from app.core.storage import BlobStore
from app.modules.history.service import HistoryService
from app.modules.transcoding.ffmpeg import FFmpegEncoder
from app.modules.transcoding.models import (
    OUTPUT_CONTENT_TYPE,
    QualityProfile,
    input_format_for,
    resolve_profile,
)
from app.modules.video.models import Video, VideoStatus
from app.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)

TRANSCODED_SUFFIX = " - Transcoded"


def build_transcoded_key(source_key: str, quality: str) -> str:
    """Key for a new transcoded artifact.

    A fresh key per attempt, so concurrent or repeated transcodes of the
    same source never collide.
    """
    millis = time.time_ns() // 1_000_000
    return f"{millis}-{secrets.token_hex(4)}-transcoded-{quality}-{source_key}"


def transcoded_description(description: str) -> str:
    return f"{description}{TRANSCODED_SUFFIX}"


class TranscodeOrchestrator:
    """Runs the transcode pipeline for one request."""

    def __init__(
        self,
        videos: VideoRepository,
        blobs: BlobStore,
        encoder: FFmpegEncoder,
        history: HistoryService,
        chunk_size: int = 1024 * 1024,
    ):
        self.videos = videos
        self.blobs = blobs
        self.encoder = encoder
        self.history = history
        self.chunk_size = chunk_size

    async def transcode(self, owner: str, source_key: str, quality_name: str) -> str:
        """Transcode ``source_key`` to ``quality_name`` on behalf of ``owner``.

        Returns:
            The new transcoded key

        Raises:
            InvalidQualityError: Unknown preset; nothing touched
            NotFoundError: No original row for ``source_key``
            AuthorizationError: The row belongs to someone else
            StorageError: Blob, metadata or history store failure
            EncodeFailure: The encoder failed (EncodeTimeoutError on deadline)
        """
        started = time.perf_counter()
        profile = resolve_profile(quality_name)
        quality = profile.quality.value

        try:
            transcoded_key = await self._run(owner, source_key, profile)
        except ServiceError as e:
            TRANSCODE_JOBS_TOTAL.labels(quality=quality, outcome=e.kind).inc()
            raise
        TRANSCODE_JOBS_TOTAL.labels(quality=quality, outcome="success").inc()
        TRANSCODE_DURATION_SECONDS.labels(quality=quality).observe(time.perf_counter() - started)
        return transcoded_key

    async def _run(self, owner: str, source_key: str, profile: QualityProfile) -> str:
        quality = profile.quality.value
        source = await self._resolve_source(owner, source_key)
        description = transcoded_description(source.video_description)
        # Hand the connection back before the long encode
        await self.videos.release()

        stream = await self.blobs.open_stream(source_key)
        try:
            artifact = await self.encoder.encode(
                stream.iter_chunks(self.chunk_size),
                profile,
                input_format_for(source_key),
            )
        except ServiceError as e:
            log_error(
                logger,
                "Encode failed",
                source_key=source_key,
                quality=quality,
                error=e.message,
                diagnostics=getattr(e, "diagnostics", None),
            )
            raise
        finally:
            await stream.close()

        transcoded_key = build_transcoded_key(source_key, quality)
        with artifact:
            await self.blobs.upload_file(artifact.path, transcoded_key, OUTPUT_CONTENT_TYPE)

        try:
            await self.videos.create(
                email=owner,
                file_path=source_key,
                description=description,
                status=VideoStatus.TRANSCODED,
                transcoded_path=transcoded_key,
                quality=quality,
            )
        except StorageError:
            await self._discard_unrecorded(transcoded_key, source_key)
            raise

        try:
            await self.history.record(
                owner, transcoded_key, description, VideoStatus.TRANSCODED, quality
            )
        except StorageError:
            log_warning(
                logger,
                "Transcoded artifact stored but missing from history",
                transcoded_key=transcoded_key,
                source_key=source_key,
            )
            raise

        log_info(
            logger,
            "Transcode complete",
            source_key=source_key,
            transcoded_key=transcoded_key,
            quality=quality,
            output_size=artifact.size,
        )
        return transcoded_key

    async def _discard_unrecorded(self, transcoded_key: str, source_key: str) -> None:
        """Delete an artifact that no metadata row points at."""
        if await self.blobs.delete(transcoded_key):
            log_warning(
                logger,
                "Metadata insert failed; transcoded artifact deleted",
                transcoded_key=transcoded_key,
                source_key=source_key,
            )
        else:
            log_error(
                logger,
                "Metadata insert failed; transcoded artifact left orphaned",
                transcoded_key=transcoded_key,
                source_key=source_key,
            )

    async def _resolve_source(self, owner: str, source_key: str) -> Video:
        source: Optional[Video] = await self.videos.get_by_source_key(source_key)
        if source is None:
            raise NotFoundError(f"Original video '{source_key}' not found")
        if source.email != owner:
            raise AuthorizationError(f"Video '{source_key}' belongs to another user")
        if not VideoStatus(source.status).can_transition_to(VideoStatus.TRANSCODED):
            raise NotFoundError(f"Original video '{source_key}' is not available for transcoding")
        return source
