from fastapi import APIRouter, Depends

from routers.history import get_history
from schemas import AdminStatsResponse
from security.auth import Identity, require_user
from services.history import HistoryService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStatsResponse)
async def admin_stats(
    identity: Identity = Depends(require_user),
    history: HistoryService = Depends(get_history),
):
    return AdminStatsResponse(stats=await history.admin_stats(identity))
