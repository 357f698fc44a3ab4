from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from schemas import HistoryResponse, MessageResponse, StatsResponse
from security.auth import Identity, require_user
from services.history import HistoryService

router = APIRouter(tags=["history"])


def get_history(request: Request) -> HistoryService:
    return request.app.state.history


@router.get("/compression/history", response_model=HistoryResponse)
async def list_history(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    identity: Identity = Depends(require_user),
    history: HistoryService = Depends(get_history),
):
    return await history.list_history(
        identity.user_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/compression/stats", response_model=StatsResponse)
async def stats(
    identity: Identity = Depends(require_user),
    history: HistoryService = Depends(get_history),
):
    return StatsResponse(stats=await history.stats(identity.user_id))


@router.delete("/compression/history/{record_id}", response_model=MessageResponse)
async def delete_record(
    record_id: str,
    identity: Identity = Depends(require_user),
    history: HistoryService = Depends(get_history),
):
    await history.delete_record(identity.user_id, record_id)
    return MessageResponse(message="Compression record deleted successfully")


@router.delete("/cleanup/{filename}", response_model=MessageResponse)
async def cleanup(
    filename: str,
    identity: Identity = Depends(require_user),
    history: HistoryService = Depends(get_history),
):
    await history.cleanup_by_filename(identity.user_id, filename)
    return MessageResponse(message="File deleted successfully")
