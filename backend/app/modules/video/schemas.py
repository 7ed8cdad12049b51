"""Pydantic schemas for video module.

Defines request/response schemas for upload descriptors and video listings.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.modules.video.models import VideoStatus


MAX_FILENAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 5000

# type/subtype with optional parameters, e.g. "video/mp4; codecs=avc1"
MIME_TYPE_PATTERN = re.compile(
    r"^[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*/[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*(\s*;\s*[^;]+)*$"
)


class UploadRequest(BaseModel):
    """Request schema for an upload descriptor."""

    filename: str = Field(..., min_length=1, max_length=MAX_FILENAME_LENGTH)
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    content_type: str = Field(..., alias="contentType", min_length=3, max_length=255)

    model_config = {"populate_by_name": True}

    @field_validator("filename", "description")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, v: str) -> str:
        v = v.strip()
        if not MIME_TYPE_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid MIME type")
        return v


class UploadDescriptorResponse(BaseModel):
    """Presigned upload descriptor returned to the client."""

    upload_url: str
    method: str = "PUT"
    headers: dict[str, str] = Field(default_factory=dict)
    expires_at: datetime
    source_key: str


class VideoResponse(BaseModel):
    """One row of a user's video listing."""

    id: int
    original_url: str
    transcoded_url: Optional[str] = None
    description: str
    quality: Optional[str] = None
    status: VideoStatus


class PlayableUrlResponse(BaseModel):
    """Time-limited download URL for one video."""

    url: str
    expires_in: int
