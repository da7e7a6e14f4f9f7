import logging
import time
import uuid
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    LedgerError,
    NotFoundError,
    PartialFailure,
    StoreOperationError,
    ValidationError,
)
from app.crud.equipment import equipment as crud_equipment
from app.crud.transactions import CRUDTransaction
from app.crud.transactions import checkin as crud_checkin
from app.crud.transactions import checkout as crud_checkout
from app.database import utcnow
from app.models.equipment import Equipment, EquipmentImage
from app.models.transactions import Checkin, Checkout
from app.schemas.equipment import EquipmentCreate, EquipmentUpdate
from app.schemas.transactions import CheckinCreate, CheckoutCreate
from app.services.images import ImagePipeline, UploadedImage
from app.services.storage import ORIGINALS_DIR, THUMBNAILS_DIR, BlobStore

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")


class EquipmentLedger:
    """
    器材帳本服務

    負責器材的新增/編輯/刪除、借出與歸還時的可借數量異動，
    以及器材圖片的上傳與移除。

    借出/歸還由多個獨立提交組成（每項器材一次遞增，最後寫入一筆紀錄），
    中途失敗時不回復已套用的異動；圖片上傳則在失敗時刪除本次已寫入的檔案。
    """

    def __init__(
        self,
        db: AsyncSession,
        storage: BlobStore,
        pipeline: ImagePipeline,
        *,
        enforce_availability: bool = True,
        max_images: int = 5,
        max_image_size: int = 10 * 1024 * 1024,
        allowed_image_types: Sequence[str] = DEFAULT_IMAGE_TYPES,
    ):
        self.db = db
        self.storage = storage
        self.pipeline = pipeline
        self.enforce_availability = enforce_availability
        self.max_images = max_images
        self.max_image_size = max_image_size
        self.allowed_image_types = tuple(allowed_image_types)

    # ------------------------------------------------------------------
    # 器材
    # ------------------------------------------------------------------

    async def list_equipment(self) -> List[Equipment]:
        return await crud_equipment.get_all(self.db)

    async def get_equipment(self, equipment_id: str) -> Equipment:
        equipment = await crud_equipment.get(self.db, equipment_id)
        if not equipment:
            raise NotFoundError("器材不存在", details={"equipmentId": equipment_id})
        return equipment

    async def create_equipment(self, obj_in: EquipmentCreate) -> Equipment:
        """創建器材；單一器材的總數與可借數量固定為 1"""
        if obj_in.unique:
            quantity, available = 1, 1
        else:
            quantity = obj_in.quantity
            available = quantity if obj_in.available is None else obj_in.available

        if available > quantity:
            raise ValidationError(
                "可借數量不可超過總數量",
                details={"quantity": quantity, "available": available},
            )

        try:
            return await crud_equipment.create(
                self.db,
                obj_in={
                    "name": obj_in.name,
                    "location": obj_in.location,
                    "quantity": quantity,
                    "available": available,
                    "unique": obj_in.unique,
                    "asset_id": obj_in.assetId,
                },
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to create equipment %r", obj_in.name, exc_info=True)
            raise StoreOperationError("建立器材失敗") from e

    async def update_equipment(self, obj_in: EquipmentUpdate) -> Equipment:
        """覆寫器材可編輯欄位，圖片不受影響"""
        quantity = 1 if obj_in.unique else obj_in.quantity
        if obj_in.available > quantity:
            raise ValidationError(
                "可借數量不可超過總數量",
                details={"quantity": quantity, "available": obj_in.available},
            )

        try:
            matched = await crud_equipment.replace_fields(
                self.db,
                equipment_id=obj_in.id,
                obj_in={
                    "name": obj_in.name,
                    "location": obj_in.location,
                    "quantity": quantity,
                    "available": obj_in.available,
                    "unique": obj_in.unique,
                    "asset_id": obj_in.assetId,
                },
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to update equipment %s", obj_in.id, exc_info=True)
            raise StoreOperationError("更新器材失敗") from e

        if matched == 0:
            raise NotFoundError("器材不存在", details={"equipmentId": obj_in.id})
        return await self.get_equipment(obj_in.id)

    async def delete_equipment(self, ids: Sequence[str]) -> int:
        """
        批次刪除器材

        先盡力刪除所有圖片檔（失敗只記錄），再一次刪除器材與圖片資料
        """
        if not ids:
            raise ValidationError("未提供器材ID")

        try:
            targets = await crud_equipment.get_many(self.db, ids=ids)
            for item in targets:
                self._discard_images(item.images)
            deleted = await crud_equipment.delete_many(self.db, ids=ids)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to delete equipments %s", list(ids), exc_info=True)
            raise StoreOperationError("刪除器材失敗") from e

        logger.info("Deleted %d equipment(s), requested %d", deleted, len(ids))
        return deleted

    # ------------------------------------------------------------------
    # 借出 / 歸還
    # ------------------------------------------------------------------

    async def checkout(self, obj_in: CheckoutCreate) -> Checkout:
        """借出器材：逐項扣減可借數量後寫入借出紀錄"""
        return await self._apply(obj_in, crud_checkout, sign=-1)

    async def checkin(self, obj_in: CheckinCreate) -> Checkin:
        """歸還器材：逐項增加可借數量後寫入歸還紀錄"""
        return await self._apply(obj_in, crud_checkin, sign=1)

    async def _apply(
        self,
        obj_in: Union[CheckoutCreate, CheckinCreate],
        crud: CRUDTransaction,
        sign: int,
    ) -> Union[Checkout, Checkin]:
        kind = crud.model.kind
        requested: Dict[str, int] = defaultdict(int)
        for item in obj_in.items:
            requested[item.equipmentId] += item.quantity

        await self._check_requested(requested, sign)

        applied: List[str] = []
        try:
            for item in obj_in.items:
                ok = await crud_equipment.adjust_available(
                    self.db,
                    equipment_id=item.equipmentId,
                    delta=sign * item.quantity,
                    guard=self.enforce_availability,
                )
                if not ok:
                    raise ValidationError(
                        "可借數量不足" if sign < 0 else "歸還數量超過總數量",
                        details={"equipmentId": item.equipmentId, "quantity": item.quantity},
                    )
                applied.append(item.equipmentId)

            record = await crud.create(self.db, obj_in=obj_in)
        except LedgerError as e:
            if not applied:
                raise
            logger.error(
                "%s for user %s stopped after %d of %d item(s): %s",
                kind, obj_in.userId, len(applied), len(obj_in.items), e.message,
            )
            raise PartialFailure(
                f"{kind} 部分完成後失敗",
                details={"applied": applied, "reason": e.message},
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "%s for user %s failed after %d of %d item(s)",
                kind, obj_in.userId, len(applied), len(obj_in.items), exc_info=True,
            )
            if applied:
                raise PartialFailure(
                    f"{kind} 部分完成後失敗", details={"applied": applied}
                ) from e
            raise StoreOperationError(f"{kind} 失敗，請稍後再試") from e

        logger.info("%s %s recorded with %d item(s)", kind, record.id, len(obj_in.items))
        return record

    async def _check_requested(self, requested: Dict[str, int], sign: int) -> None:
        """在任何寫入前確認器材存在，且（啟用時）數量不會超出範圍"""
        try:
            found = {e.id: e for e in await crud_equipment.get_many(self.db, ids=list(requested))}
        except SQLAlchemyError as e:
            logger.error("Failed to load equipments %s", list(requested), exc_info=True)
            raise StoreOperationError("讀取器材失敗") from e

        missing = [equipment_id for equipment_id in requested if equipment_id not in found]
        if missing:
            raise NotFoundError("器材不存在", details={"equipmentIds": missing})

        if not self.enforce_availability:
            return

        problems = []
        for equipment_id, quantity in requested.items():
            equipment = found[equipment_id]
            if sign < 0 and quantity > equipment.available:
                problems.append({
                    "equipmentId": equipment_id,
                    "requested": quantity,
                    "available": equipment.available,
                })
            elif sign > 0 and equipment.available + quantity > equipment.quantity:
                problems.append({
                    "equipmentId": equipment_id,
                    "requested": quantity,
                    "available": equipment.available,
                    "quantity": equipment.quantity,
                })
        if problems:
            message = "可借數量不足" if sign < 0 else "歸還數量超過總數量"
            raise ValidationError(message, details={"items": problems})

    # ------------------------------------------------------------------
    # 圖片
    # ------------------------------------------------------------------

    async def attach_images(
        self, equipment_id: Optional[str], files: List[UploadedImage]
    ) -> List[EquipmentImage]:
        """
        上傳器材圖片

        全部成功才寫入圖片資料；任何一張失敗時刪除本次已寫入的檔案並拋出錯誤
        """
        if not equipment_id:
            raise ValidationError("未提供器材ID")
        if not files:
            raise ValidationError("未提供圖片")

        errors = list(self._validate_files(files))
        if errors:
            raise ValidationError("圖片檔案不符合規定", details={"errors": errors})

        equipment = await self.get_equipment(equipment_id)

        existing = len(equipment.images)
        if existing + len(files) > self.max_images:
            raise ValidationError(
                f"每項器材最多 {self.max_images} 張圖片",
                details={"existing": existing, "uploading": len(files)},
            )

        next_order = max((image.order for image in equipment.images), default=-1) + 1
        saved_paths: List[str] = []
        metadata = []
        try:
            for index, upload in enumerate(files):
                image_id = str(uuid.uuid4())
                filename = f"{int(time.time() * 1000)}-{image_id}.jpg"
                original_path = BlobStore.rendition_path(ORIGINALS_DIR, equipment_id, filename)
                thumbnail_path = BlobStore.rendition_path(THUMBNAILS_DIR, equipment_id, filename)

                renditions = await run_in_threadpool(self.pipeline.render, upload.data)

                self.storage.write(original_path, renditions.original)
                saved_paths.append(original_path)
                self.storage.write(thumbnail_path, renditions.thumbnail)
                saved_paths.append(thumbnail_path)

                metadata.append({
                    "id": image_id,
                    "filename": upload.filename or f"image-{index + 1}.jpg",
                    "original_path": original_path,
                    "thumbnail_path": thumbnail_path,
                    "mime_type": upload.content_type or "image/jpeg",
                    "size": upload.size,
                    "uploaded_at": utcnow(),
                    "order": next_order + index,
                })

            images = await crud_equipment.append_images(
                self.db,
                equipment_id=equipment_id,
                images=metadata,
                max_images=self.max_images,
            )
            if images is None:
                # 同時有其他上傳先完成，加入後會超過上限
                raise ValidationError(
                    f"每項器材最多 {self.max_images} 張圖片",
                    details={"existing": existing, "uploading": len(files)},
                )
        except LedgerError:
            self._discard_paths(saved_paths)
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Saving image metadata for equipment %s failed", equipment_id, exc_info=True)
            self._discard_paths(saved_paths)
            raise StoreOperationError("上傳圖片失敗") from e
        except Exception as e:
            logger.error("Image upload for equipment %s failed", equipment_id, exc_info=True)
            self._discard_paths(saved_paths)
            raise StoreOperationError("上傳圖片失敗") from e

        logger.info("Attached %d image(s) to equipment %s", len(images), equipment_id)
        return images

    def _validate_files(self, files: Iterable[UploadedImage]) -> Iterable[str]:
        for upload in files:
            if upload.content_type not in self.allowed_image_types:
                yield f"{upload.filename}: 不支援的檔案類型"
            if upload.size == 0 or upload.size > self.max_image_size:
                yield f"{upload.filename}: 檔案大小需介於 1 byte 與 {self.max_image_size // (1024 * 1024)}MB 之間"

    async def detach_images(self, equipment_id: str, image_ids: Sequence[str]) -> int:
        """移除器材圖片：先盡力刪除檔案，再移除圖片資料"""
        equipment = await self.get_equipment(equipment_id)

        wanted = set(image_ids)
        targets = [image for image in equipment.images if image.id in wanted]
        self._discard_images(targets)

        try:
            removed = await crud_equipment.remove_images(
                self.db, equipment_id=equipment_id, image_ids=[image.id for image in targets]
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to remove images from equipment %s", equipment_id, exc_info=True)
            raise StoreOperationError("刪除圖片失敗") from e
        return removed

    async def read_image(self, image_id: str, rendition: str = "original") -> Tuple[EquipmentImage, bytes]:
        """讀取圖片檔案內容"""
        image = await crud_equipment.get_image(self.db, image_id=image_id)
        if not image:
            raise NotFoundError("圖片不存在", details={"imageId": image_id})

        path = image.thumbnail_path if rendition == "thumbnail" else image.original_path
        try:
            data = self.storage.read(path)
        except FileNotFoundError as e:
            logger.error("Image file missing on storage: image=%s path=%s", image_id, path)
            raise NotFoundError("圖片檔案不存在", details={"imageId": image_id}) from e
        return image, data

    def _discard_images(self, images: Iterable[EquipmentImage]) -> None:
        for image in images:
            self._discard_paths([image.original_path, image.thumbnail_path])

    def _discard_paths(self, paths: Iterable[str]) -> None:
        # 檔案清理失敗不影響主要流程
        for path in paths:
            try:
                self.storage.delete(path)
            except Exception:
                logger.warning("Failed to delete image file %s", path, exc_info=True)
