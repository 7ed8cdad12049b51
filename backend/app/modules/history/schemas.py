"""Pydantic schemas for history module."""

from typing import Optional

from pydantic import BaseModel

from app.modules.history.models import HistoryEvent


class HistoryEventResponse(BaseModel):
    timestamp: str
    username: str
    video_key: str
    description: str
    quality: Optional[str] = None
    status: str

    @classmethod
    def from_event(cls, event: HistoryEvent) -> "HistoryEventResponse":
        return cls(
            timestamp=event.timestamp,
            username=event.username,
            video_key=event.video_key,
            description=event.description,
            quality=event.quality,
            status=event.status,
        )
