"""History API router."""

from fastapi import APIRouter, Depends

from app.core.dependencies import get_history_service
from app.modules.auth.jwt import get_current_owner
from app.modules.history.schemas import HistoryEventResponse
from app.modules.history.service import HistoryService

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=list[HistoryEventResponse])
async def list_history(
    owner: str = Depends(get_current_owner),
    service: HistoryService = Depends(get_history_service),
):
    """The caller's upload and transcode events, oldest first.

    An owner with no events gets an empty list.
    """
    events = await service.list_for_owner(owner)
    return [HistoryEventResponse.from_event(e) for e in events]
