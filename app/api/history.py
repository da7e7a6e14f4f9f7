from typing import Any

from fastapi import APIRouter, Depends

from app.api.deps import get_history_projector
from app.schemas.history import HistoryResponse
from app.services.history import HistoryProjector

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=HistoryResponse, response_model_exclude_none=True)
async def get_history(
    projector: HistoryProjector = Depends(get_history_projector),
) -> Any:
    """
    獲取借還歷史，最新的在前
    """
    return {"success": True, "data": await projector.get_history()}
