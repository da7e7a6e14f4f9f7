from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_ledger
from app.api.equipment import image_to_dict
from app.database import get_db
from app.schemas.images import ImageDeleteRequest, ImageDeleteResponse, ImageUploadResponse
from app.services.images import UploadedImage
from app.services.ledger import EquipmentLedger
from app.services.logging import logging_service

router = APIRouter(prefix="/equipments/images", tags=["images"])


@router.post("", response_model=ImageUploadResponse)
async def upload_images(
    request: Request,
    equipmentId: Optional[str] = Form(None, description="器材ID"),
    images: Optional[List[UploadFile]] = File(None, description="圖片檔案"),
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    上傳器材圖片 (multipart/form-data)
    """
    uploads = []
    for upload in images or []:
        uploads.append(
            UploadedImage(
                filename=upload.filename or "",
                content_type=upload.content_type,
                data=await upload.read(),
            )
        )

    attached = await ledger.attach_images(equipmentId, uploads)

    await logging_service.audit(
        db,
        component="image",
        action="upload",
        resource_type="equipment",
        resource_id=equipmentId,
        details={"imageIds": [image.id for image in attached]},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": [image_to_dict(image) for image in attached]}


@router.delete("", response_model=ImageDeleteResponse)
async def delete_images(
    request: Request,
    delete_in: ImageDeleteRequest,
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    移除器材圖片
    """
    deleted = await ledger.detach_images(delete_in.equipmentId, delete_in.imageIds)

    await logging_service.audit(
        db,
        component="image",
        action="delete",
        resource_type="equipment",
        resource_id=delete_in.equipmentId,
        details={"imageIds": delete_in.imageIds, "deletedCount": deleted},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {"success": True, "data": {"deletedCount": deleted}}


@router.get("/{image_id}")
async def get_image(
    request: Request,
    image_id: str,
    type: Literal["original", "thumbnail"] = Query("original", description="圖片版本"),
    ledger: EquipmentLedger = Depends(get_ledger),
) -> Response:
    """
    取得圖片檔案，所有版本皆為 JPEG
    """
    image, data = await ledger.read_image(image_id, type)
    max_age = request.app.state.settings.IMAGE_CACHE_MAX_AGE
    return Response(
        content=data,
        media_type="image/jpeg",
        headers={
            "Cache-Control": f"public, max-age={max_age}, immutable",
            "ETag": f'"{image.id}"',
        },
    )
