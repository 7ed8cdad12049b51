"""Video models.

One ``videos`` row exists per stored artifact: the original upload and each
transcoded variant are separate, immutable rows. A transcoded row keeps the
source key it was derived from in ``file_path`` and its own key in
``transcoded_path``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base


class VideoStatus(str, Enum):
    """Lifecycle status of a video row."""

    UPLOADING = "uploading"
    TRANSCODED = "transcoded"
    FAILED = "failed"

    def can_transition_to(self, target: "VideoStatus") -> bool:
        """Status only moves forward: uploading to transcoded or failed."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS = {
    VideoStatus.UPLOADING: frozenset({VideoStatus.TRANSCODED, VideoStatus.FAILED}),
    VideoStatus.TRANSCODED: frozenset(),
    VideoStatus.FAILED: frozenset(),
}


class Video(Base):
    """A stored video artifact owned by one user."""

    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    video_description: Mapped[str] = mapped_column(Text, nullable=False)
    transcoded_path: Mapped[Optional[str]] = mapped_column(
        String(1024), unique=True, nullable=True
    )
    quality: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=VideoStatus.UPLOADING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def playable_key(self) -> str:
        """Key of the artifact this row stands for."""
        return self.transcoded_path or self.file_path

    def __repr__(self) -> str:
        return f"<Video {self.id} - {self.playable_key} - {self.status}>"
