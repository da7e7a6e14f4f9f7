from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas import ResponseBase


# 圖片中繼資料
class EquipmentImage(BaseModel):
    id: str = Field(..., description="圖片ID")
    filename: str = Field(..., description="上傳時的原始檔名")
    originalPath: str = Field(..., description="原圖於儲存區的路徑")
    thumbnailPath: str = Field(..., description="縮圖於儲存區的路徑")
    mimeType: str = Field(..., description="上傳檔案的 MIME 類型")
    size: int = Field(..., description="上傳檔案大小 (bytes)")
    uploadedAt: datetime = Field(..., description="上傳時間")
    order: int = Field(..., description="顯示順序")


# 器材基礎模型
class EquipmentBase(BaseModel):
    name: str = Field(..., min_length=1, description="器材名稱")
    location: str = Field(..., min_length=1, description="存放地點")
    unique: bool = Field(False, description="是否為單一器材 (數量固定為 1)")
    assetId: Optional[str] = Field(None, description="財產編號")


# 請求模型
class EquipmentCreate(EquipmentBase):
    quantity: int = Field(1, ge=1, description="總數量")
    available: Optional[int] = Field(None, ge=0, description="可借數量，未提供時等於總數量")


class EquipmentUpdate(EquipmentBase):
    id: str = Field(..., min_length=1, description="器材ID")
    quantity: int = Field(..., ge=1, description="總數量")
    available: int = Field(..., ge=0, description="可借數量")


class EquipmentDelete(BaseModel):
    items: List[str] = Field(..., min_length=1, description="要刪除的器材ID清單")


# 回應模型
class Equipment(EquipmentBase):
    id: str = Field(..., description="器材ID")
    quantity: int = Field(..., description="總數量")
    available: int = Field(..., description="可借數量")
    images: List[EquipmentImage] = Field(default_factory=list, description="器材圖片")
    createdAt: datetime = Field(..., description="建立時間")
    updatedAt: Optional[datetime] = Field(None, description="更新時間")


class EquipmentResponse(ResponseBase):
    data: Equipment


class EquipmentList(ResponseBase):
    data: List[Equipment]


class EquipmentDeleteResponse(ResponseBase):
    data: dict = Field(
        ...,
        json_schema_extra={"example": {"deletedCount": 2}},
    )
