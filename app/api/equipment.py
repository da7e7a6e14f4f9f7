from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_ledger
from app.database import get_db
from app.models.equipment import Equipment, EquipmentImage
from app.schemas.equipment import (
    EquipmentCreate,
    EquipmentDelete,
    EquipmentDeleteResponse,
    EquipmentList,
    EquipmentResponse,
    EquipmentUpdate,
)
from app.services.ledger import EquipmentLedger
from app.services.logging import logging_service

router = APIRouter(prefix="/equipments", tags=["equipments"])


def image_to_dict(image: EquipmentImage) -> Dict[str, Any]:
    return {
        "id": image.id,
        "filename": image.filename,
        "originalPath": image.original_path,
        "thumbnailPath": image.thumbnail_path,
        "mimeType": image.mime_type,
        "size": image.size,
        "uploadedAt": image.uploaded_at,
        "order": image.order,
    }


def equipment_to_dict(equipment: Equipment) -> Dict[str, Any]:
    return {
        "id": equipment.id,
        "name": equipment.name,
        "location": equipment.location,
        "quantity": equipment.quantity,
        "available": equipment.available,
        "unique": equipment.unique,
        "assetId": equipment.asset_id,
        "images": [image_to_dict(image) for image in equipment.images],
        "createdAt": equipment.created_at,
        "updatedAt": equipment.updated_at,
    }


@router.get("", response_model=EquipmentList)
async def get_equipment_list(
    ledger: EquipmentLedger = Depends(get_ledger),
) -> Any:
    """
    獲取器材列表
    """
    equipments = await ledger.list_equipment()
    return {"success": True, "data": [equipment_to_dict(e) for e in equipments]}


@router.post("", response_model=EquipmentResponse)
async def create_equipment(
    request: Request,
    equipment_in: EquipmentCreate,
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    創建新器材
    """
    equipment = await ledger.create_equipment(equipment_in)

    # 記錄創建成功
    await logging_service.audit(
        db,
        component="equipment",
        action="create",
        resource_type="equipment",
        resource_id=equipment.id,
        details={
            "name": equipment.name,
            "quantity": equipment.quantity,
            "available": equipment.available,
            "unique": equipment.unique,
        },
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": equipment_to_dict(equipment)}


@router.put("", response_model=EquipmentResponse)
async def update_equipment(
    request: Request,
    equipment_in: EquipmentUpdate,
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    更新器材資訊
    """
    equipment = await ledger.update_equipment(equipment_in)

    # 記錄更新成功
    await logging_service.audit(
        db,
        component="equipment",
        action="update",
        resource_type="equipment",
        resource_id=equipment.id,
        details={
            "name": equipment.name,
            "location": equipment.location,
            "quantity": equipment.quantity,
            "available": equipment.available,
            "unique": equipment.unique,
        },
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": equipment_to_dict(equipment)}


@router.delete("", response_model=EquipmentDeleteResponse)
async def delete_equipments(
    request: Request,
    delete_in: EquipmentDelete,
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    批次刪除器材（連同圖片）
    """
    deleted = await ledger.delete_equipment(delete_in.items)

    # 記錄刪除成功
    await logging_service.audit(
        db,
        component="equipment",
        action="delete",
        resource_type="equipments",
        resource_id=",".join(delete_in.items),
        details={"deletedCount": deleted},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": {"deletedCount": deleted}}
