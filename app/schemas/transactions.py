from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas import ResponseBase


# 借出/歸還項目
class TransactionItem(BaseModel):
    equipmentId: str = Field(..., min_length=1, description="器材ID")
    name: str = Field(..., description="器材名稱")
    quantity: int = Field(..., ge=1, description="數量")


class CheckinItem(TransactionItem):
    checkoutId: Optional[str] = Field(None, description="對應的借出紀錄ID")


class TransactionBase(BaseModel):
    userId: str = Field(..., min_length=1, description="使用者ID")
    project: str = Field(..., min_length=1, description="專案名稱")


# 請求模型
class CheckoutCreate(TransactionBase):
    items: List[TransactionItem] = Field(..., min_length=1, description="借出器材清單")


class CheckinCreate(TransactionBase):
    items: List[CheckinItem] = Field(..., min_length=1, description="歸還器材清單")


# 回應模型
class Transaction(TransactionBase):
    id: str = Field(..., description="紀錄ID")
    items: List[dict] = Field(..., description="器材清單")
    date: datetime = Field(..., description="借出/歸還時間")
    status: str = Field(..., description="狀態")


class TransactionList(ResponseBase):
    data: List[Transaction]


class CheckoutResponse(ResponseBase):
    data: dict = Field(
        ...,
        json_schema_extra={
            "example": {
                "checkoutId": "0b7e5b1e-6b1f-4c55-9f7a-1b2c3d4e5f60",
                "status": "active",
                "date": "2025-04-27T10:30:45Z",
            }
        },
    )


class CheckinResponse(ResponseBase):
    data: dict = Field(
        ...,
        json_schema_extra={
            "example": {
                "checkinId": "5d0f7c2a-2e64-4f0e-8b9a-6c7d8e9f0a1b",
                "status": "completed",
                "date": "2025-04-28T09:12:03Z",
            }
        },
    )
