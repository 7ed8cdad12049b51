"""Transcoding API router."""

from fastapi import APIRouter, Depends

from app.core.dependencies import get_transcode_orchestrator
from app.modules.auth.jwt import get_current_owner
from app.modules.transcoding.schemas import TranscodeRequest, TranscodeResponse
from app.modules.transcoding.service import TranscodeOrchestrator

router = APIRouter(prefix="/videos", tags=["transcoding"])


@router.post("/transcode", response_model=TranscodeResponse)
async def transcode_video(
    request: TranscodeRequest,
    owner: str = Depends(get_current_owner),
    orchestrator: TranscodeOrchestrator = Depends(get_transcode_orchestrator),
):
    """Transcode one of the caller's uploads to a quality preset.

    Runs to completion within the request; the response carries the key of
    the new artifact.
    """
    transcoded_key = await orchestrator.transcode(owner, request.source_key, request.quality)
    return TranscodeResponse(transcoded_key=transcoded_key, quality=request.quality)
