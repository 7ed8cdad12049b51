"""Pydantic schemas for transcoding service."""

from pydantic import BaseModel, Field

from app.modules.transcoding.models import QualityProfile


class TranscodeRequest(BaseModel):
    """Schema for starting a transcode."""
    source_key: str = Field(..., alias="videoKey", min_length=1, description="Key of the uploaded original")
    # Checked against the presets by the orchestrator, not here
    quality: str = Field(..., min_length=1, description="low, medium or high")

    model_config = {"populate_by_name": True}


class TranscodeResponse(BaseModel):
    """Schema for a finished transcode."""
    transcoded_key: str
    quality: str
    message: str = "Video transcoded successfully"


class QualityProfileResponse(BaseModel):
    """One transcode preset."""
    quality: str
    width: int
    height: int
    resolution: str
    video_bitrate: str

    @classmethod
    def from_profile(cls, profile: QualityProfile) -> "QualityProfileResponse":
        return cls(
            quality=profile.quality.value,
            width=profile.width,
            height=profile.height,
            resolution=profile.resolution,
            video_bitrate=profile.video_bitrate,
        )
