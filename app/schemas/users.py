from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas import ResponseBase


class UserBase(BaseModel):
    firstName: str = Field(..., min_length=1, description="名")
    lastName: str = Field(..., min_length=1, description="姓")
    position: Optional[str] = Field(None, description="職稱")
    email: Optional[str] = Field(None, description="電子郵件")


class UserCreate(UserBase):
    id: Optional[str] = Field(None, description="使用者ID，未提供時自動產生")


class UserUpdate(UserBase):
    id: str = Field(..., min_length=1, description="使用者ID")
    position: str = Field(..., min_length=1, description="職稱")
    email: str = Field(..., min_length=1, description="電子郵件")


class UserDelete(BaseModel):
    userIds: List[str] = Field(..., min_length=1, description="要刪除的使用者ID清單")


class User(UserBase):
    id: str = Field(..., description="使用者ID")
    createdAt: datetime = Field(..., description="建立時間")


class UserResponse(ResponseBase):
    data: User


class UserListResponse(ResponseBase):
    data: List[User]


class UserDeleteResponse(ResponseBase):
    data: dict = Field(
        ...,
        json_schema_extra={"example": {"deletedCount": 2}},
    )
