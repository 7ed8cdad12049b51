"""Video repository for database operations.

Rows are only ever inserted, read or (as an upload compensation) deleted;
nothing updates a row after it is created.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import StorageError
from app.modules.video.models import Video, VideoStatus


class VideoRepository:
    """Repository for Video rows."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        email: str,
        file_path: str,
        description: str,
        status: VideoStatus = VideoStatus.UPLOADING,
        transcoded_path: Optional[str] = None,
        quality: Optional[str] = None,
    ) -> Video:
        """Insert and commit a new video row.

        Args:
            email: Owner email
            file_path: Source key in blob storage
            description: Video description
            status: Initial status
            transcoded_path: Key of the transcoded artifact, if any
            quality: Quality preset name, if transcoded

        Returns:
            Video: Created video instance

        Raises:
            StorageError: If the insert is rejected
        """
        video = Video(
            email=email,
            file_path=file_path,
            video_description=description,
            transcoded_path=transcoded_path,
            quality=quality,
            status=status.value,
        )

        try:
            self.session.add(video)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(f"Could not insert video row for {file_path}: {e}") from e

        return video

    async def get_by_id(self, video_id: int) -> Optional[Video]:
        """Get a video by ID."""
        try:
            result = await self.session.execute(select(Video).where(Video.id == video_id))
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load video {video_id}: {e}") from e
        return result.scalar_one_or_none()

    async def get_by_source_key(self, source_key: str) -> Optional[Video]:
        """Get the original upload row for a source key.

        Transcoded rows share ``file_path`` with their source, so only rows
        without a ``transcoded_path`` are considered.
        """
        try:
            result = await self.session.execute(
                select(Video)
                .where(Video.file_path == source_key, Video.transcoded_path.is_(None))
                .order_by(Video.id)
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not look up source key {source_key}: {e}") from e
        return result.scalar_one_or_none()

    async def list_by_owner(self, email: str) -> list[Video]:
        """List every row (originals and transcodes) owned by ``email``."""
        try:
            result = await self.session.execute(
                select(Video).where(Video.email == email).order_by(Video.id)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not list videos: {e}") from e
        return list(result.scalars().all())

    async def release(self) -> None:
        """End the current read transaction so its connection returns to the pool.

        Loaded rows stay usable because sessions do not expire on commit.
        """
        if not self.session.in_transaction():
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(f"Could not end read transaction: {e}") from e

    async def delete(self, video: Video) -> None:
        """Delete a row; only used to undo a half-finished upload request."""
        try:
            await self.session.delete(video)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(f"Could not delete video {video.id}: {e}") from e
