"""Quality presets and fixed encoding parameters for transcoding.

Presets are static configuration, not persisted.
"""

import os
from dataclasses import dataclass
from enum import Enum

from app.core.errors import InvalidQualityError


class Quality(str, Enum):
    """Supported quality presets."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Fixed for every preset
VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"
OUTPUT_FORMAT = "mp4"
OUTPUT_CONTENT_TYPE = "video/mp4"
PIXEL_FORMAT = "yuv420p"
# Fragmented MP4: each fragment is playable on its own and the muxer never
# seeks back, so the output can be written to a pipe.
FRAGMENTED_MOVFLAGS = "frag_keyframe+empty_moov"
# Generous probing for unusual containers arriving over a pipe
ANALYZE_DURATION = "500M"
PROBE_SIZE = "500M"


@dataclass(frozen=True)
class QualityProfile:
    """Target resolution and bitrate for one preset."""
    quality: Quality
    width: int
    height: int
    video_bitrate_kbps: int

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def video_bitrate(self) -> str:
        return f"{self.video_bitrate_kbps}k"


QUALITY_PROFILES = {
    Quality.LOW: QualityProfile(Quality.LOW, 640, 480, 500),
    Quality.MEDIUM: QualityProfile(Quality.MEDIUM, 1280, 720, 1500),
    Quality.HIGH: QualityProfile(Quality.HIGH, 1920, 1080, 3000),
}


# Container extension -> FFmpeg demuxer name
INPUT_FORMATS = {
    ".mp4": "mp4",
    ".m4v": "mp4",
    ".mov": "mov",
    ".mkv": "matroska",
    ".webm": "webm",
    ".avi": "avi",
    ".flv": "flv",
    ".ts": "mpegts",
}
DEFAULT_INPUT_FORMAT = "mp4"


def resolve_profile(quality_name: str) -> QualityProfile:
    """Get the profile for a preset name.

    Raises:
        InvalidQualityError: If the name is not a configured preset
    """
    try:
        return QUALITY_PROFILES[Quality(quality_name)]
    except ValueError:
        allowed = ", ".join(q.value for q in Quality)
        raise InvalidQualityError(
            f"Unknown quality '{quality_name}'. Allowed: {allowed}"
        ) from None


def input_format_for(key: str) -> str:
    """Guess the demuxer for a source object from its key's extension."""
    ext = os.path.splitext(key)[1].lower()
    return INPUT_FORMATS.get(ext, DEFAULT_INPUT_FORMAT)
