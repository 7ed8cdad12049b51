"""History recording and lookup."""

import secrets
from typing import Optional

from app.modules.history.models import HistoryEvent, MonotonicMillisClock
from app.modules.history.repository import HistoryLog
from app.modules.video.models import VideoStatus


class HistoryService:
    """Builds history events for lifecycle milestones and reads them back."""

    def __init__(
        self,
        log: HistoryLog,
        category: str = "Video",
        clock: Optional[MonotonicMillisClock] = None,
    ):
        self.log = log
        self.category = category
        self.clock = clock or MonotonicMillisClock()

    def build_event(
        self,
        owner: str,
        video_key: str,
        description: str,
        status: VideoStatus,
        quality: Optional[str] = None,
    ) -> HistoryEvent:
        timestamp = str(self.clock.next())
        return HistoryEvent(
            owner_partition=owner,
            sort_key=f"{self.category}#{timestamp}#{secrets.token_hex(4)}",
            timestamp=timestamp,
            username=owner,
            video_key=video_key,
            description=description,
            quality=quality,
            status=status.value,
        )

    async def record(
        self,
        owner: str,
        video_key: str,
        description: str,
        status: VideoStatus,
        quality: Optional[str] = None,
    ) -> HistoryEvent:
        """Append one event.

        Raises:
            StorageError: If the log rejects the write
        """
        event = self.build_event(owner, video_key, description, status, quality)
        await self.log.append(event)
        return event

    async def list_for_owner(self, owner: str) -> list[HistoryEvent]:
        """All events recorded for ``owner``; an empty list is a valid answer."""
        return await self.log.query(owner, self.category, username=owner)
