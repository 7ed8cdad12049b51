"""History event model and the DynamoDB item layout it maps to.

Items are keyed by ``(owner, sk)``: the partition is the owner's email and the
sort key is ``<category>#<timestamp>#<token>``. Events are append-only.
"""

import threading
import time
from typing import Optional

from pydantic import BaseModel

PARTITION_KEY = "owner"
SORT_KEY = "sk"


class HistoryEvent(BaseModel):
    """One upload/transcode lifecycle fact."""

    owner_partition: str
    sort_key: str
    timestamp: str
    username: str
    video_key: str
    description: str
    quality: Optional[str] = None
    status: str

    def to_item(self) -> dict:
        """Render as a DynamoDB item."""
        item = {
            PARTITION_KEY: self.owner_partition,
            SORT_KEY: self.sort_key,
            "timestamp": self.timestamp,
            "username": self.username,
            "videoKey": self.video_key,
            "description": self.description,
            "status": self.status,
        }
        if self.quality is not None:
            item["quality"] = self.quality
        return item

    @classmethod
    def from_item(cls, item: dict) -> "HistoryEvent":
        return cls(
            owner_partition=item[PARTITION_KEY],
            sort_key=item[SORT_KEY],
            timestamp=str(item["timestamp"]),
            username=item["username"],
            video_key=item["videoKey"],
            description=item.get("description", ""),
            quality=item.get("quality"),
            status=item["status"],
        )


class MonotonicMillisClock:
    """Epoch-millisecond clock that never repeats or goes backwards.

    Two emissions in the same millisecond get consecutive values.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last = max(now, self._last + 1)
            return self._last
