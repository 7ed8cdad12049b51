"""FastAPI dependencies that hand request handlers their services.

Everything is resolved from the ``ServiceContainer`` on ``app.state``, so
tests can swap in a container of fakes or override any single provider.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.container import ServiceContainer
from app.modules.history.service import HistoryService
from app.modules.transcoding.service import TranscodeOrchestrator
from app.modules.video.repository import VideoRepository
from app.modules.video.service import UploadCoordinator, VideoQueryService


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_db(
    container: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting a database session."""
    async for session in container.database.session():
        yield session


def get_video_repository(db: AsyncSession = Depends(get_db)) -> VideoRepository:
    return VideoRepository(db)


def get_history_service(
    container: ServiceContainer = Depends(get_container),
) -> HistoryService:
    return HistoryService(
        container.history_log,
        category=container.settings.HISTORY_SORT_KEY_PREFIX,
        clock=container.history_clock,
    )


def get_upload_coordinator(
    container: ServiceContainer = Depends(get_container),
    videos: VideoRepository = Depends(get_video_repository),
    history: HistoryService = Depends(get_history_service),
) -> UploadCoordinator:
    return UploadCoordinator(
        videos,
        container.blobs,
        history,
        upload_ttl=container.settings.UPLOAD_URL_TTL_SECONDS,
    )


def get_video_query_service(
    container: ServiceContainer = Depends(get_container),
    videos: VideoRepository = Depends(get_video_repository),
) -> VideoQueryService:
    return VideoQueryService(
        videos, container.blobs, url_ttl=container.settings.DOWNLOAD_URL_TTL_SECONDS
    )


def get_transcode_orchestrator(
    container: ServiceContainer = Depends(get_container),
    videos: VideoRepository = Depends(get_video_repository),
    history: HistoryService = Depends(get_history_service),
) -> TranscodeOrchestrator:
    return TranscodeOrchestrator(
        videos,
        container.blobs,
        container.encoder,
        history,
        chunk_size=container.settings.ENCODE_CHUNK_SIZE,
    )
