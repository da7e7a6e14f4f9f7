from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas import ResponseBase


class HistoryEntry(BaseModel):
    id: str = Field(..., description="{kind}-{transactionId}-{equipmentId}")
    product: str = Field(..., description="器材名稱")
    project: str = Field(..., description="專案名稱")
    quantity: int = Field(..., description="數量")
    activity: str = Field(..., description="Check-Out 或 Check-In")
    date: str = Field(..., description="顯示日期，例如 05 Mar 2025")
    by: str = Field(..., description="使用者顯示名稱")
    checkoutId: Optional[str] = None
    checkinId: Optional[str] = None
    timestamp: int = Field(..., description="紀錄時間 (epoch 毫秒)")


class HistoryResponse(ResponseBase):
    data: List[HistoryEntry]
