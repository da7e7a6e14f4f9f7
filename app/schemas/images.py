from typing import List

from pydantic import BaseModel, Field

from app.schemas import ResponseBase
from app.schemas.equipment import EquipmentImage


class ImageDeleteRequest(BaseModel):
    equipmentId: str = Field(..., min_length=1, description="圖片所屬器材ID")
    imageIds: List[str] = Field(..., min_length=1, description="要刪除的圖片ID清單")


class ImageUploadResponse(ResponseBase):
    data: List[EquipmentImage]


class ImageDeleteResponse(ResponseBase):
    data: dict = Field(
        ...,
        json_schema_extra={"example": {"deletedCount": 1}},
    )
