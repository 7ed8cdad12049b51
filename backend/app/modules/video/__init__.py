"""Video management module."""

from app.modules.video.models import Video, VideoStatus
from app.modules.video.repository import VideoRepository

__all__ = [
    # Models
    "Video",
    "VideoStatus",
    # Repositories
    "VideoRepository",
]
