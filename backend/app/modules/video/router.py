"""Video API router.

Upload descriptors, the owner's video listing and playable URLs.
"""

from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_upload_coordinator, get_video_query_service
from app.modules.auth.jwt import get_current_owner
from app.modules.transcoding.models import QUALITY_PROFILES
from app.modules.transcoding.schemas import QualityProfileResponse
from app.modules.video.schemas import (
    PlayableUrlResponse,
    UploadDescriptorResponse,
    UploadRequest,
    VideoResponse,
)
from app.modules.video.service import UploadCoordinator, VideoQueryService

router = APIRouter(prefix="/videos", tags=["videos"])


@router.post(
    "/uploads",
    response_model=UploadDescriptorResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_upload(
    request: UploadRequest,
    owner: str = Depends(get_current_owner),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    """Get a presigned URL to upload a video directly to storage.

    The video row is created in ``uploading`` state before the URL is returned.
    """
    descriptor, source_key = await coordinator.request_upload(
        owner=owner,
        filename=request.filename,
        content_type=request.content_type,
        description=request.description,
    )
    return UploadDescriptorResponse(
        upload_url=descriptor.url,
        method=descriptor.method,
        headers=descriptor.headers,
        expires_at=descriptor.expires_at,
        source_key=source_key,
    )


@router.get("", response_model=list[VideoResponse])
async def list_videos(
    owner: str = Depends(get_current_owner),
    service: VideoQueryService = Depends(get_video_query_service),
):
    """List the caller's videos, originals and transcodes."""
    return await service.list_videos(owner)


@router.get("/qualities", response_model=list[QualityProfileResponse])
async def list_qualities():
    """List the available transcode presets."""
    return [QualityProfileResponse.from_profile(p) for p in QUALITY_PROFILES.values()]


@router.get("/{video_id}/url", response_model=PlayableUrlResponse)
async def get_playable_url(
    video_id: int,
    download: bool = Query(False, description="Serve as an attachment"),
    owner: str = Depends(get_current_owner),
    service: VideoQueryService = Depends(get_video_query_service),
):
    """Get a time-limited URL for one video."""
    url = await service.get_playable_url(owner, video_id, as_attachment=download)
    return PlayableUrlResponse(url=url, expires_in=service.url_ttl)
