from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.crud.users import user as crud_user
from app.database import get_db
from app.models.users import User
from app.schemas.users import (
    UserCreate,
    UserDelete,
    UserDeleteResponse,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from app.services.logging import logging_service

router = APIRouter(prefix="/users", tags=["users"])


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "position": user.position,
        "email": user.email,
        "createdAt": user.created_at,
    }


@router.get("", response_model=UserListResponse)
async def get_users(db: AsyncSession = Depends(get_db)) -> Any:
    """
    獲取使用者列表
    """
    users = await crud_user.get_all(db)
    return {"success": True, "data": [user_to_dict(u) for u in users]}


@router.post("", response_model=UserResponse)
async def create_user(
    request: Request,
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    創建使用者
    """
    if user_in.id and await crud_user.exists(db, id=user_in.id):
        raise ValidationError("使用者ID已存在", details={"userId": user_in.id})

    user = await crud_user.create(db, obj_in=user_in)

    await logging_service.audit(
        db,
        component="user",
        action="create",
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": user_to_dict(user)}


@router.put("", response_model=UserResponse)
async def update_user(
    request: Request,
    user_in: UserUpdate,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    更新使用者資訊
    """
    user = await crud_user.get(db, user_in.id)
    if not user:
        raise NotFoundError("使用者不存在", details={"userId": user_in.id})

    user = await crud_user.update(db, db_obj=user, obj_in=user_in)

    await logging_service.audit(
        db,
        component="user",
        action="update",
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": user_to_dict(user)}


@router.delete("", response_model=UserDeleteResponse)
async def delete_users(
    request: Request,
    delete_in: UserDelete,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    批次刪除使用者
    """
    deleted = await crud_user.remove_many(db, ids=delete_in.userIds)

    await logging_service.audit(
        db,
        component="user",
        action="delete",
        resource_type="users",
        resource_id=",".join(delete_in.userIds),
        details={"deletedCount": deleted},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": {"deletedCount": deleted}}
