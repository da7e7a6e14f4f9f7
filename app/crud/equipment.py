from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.crud.base import CRUDBase
from app.models.equipment import Equipment, EquipmentImage
from app.schemas.equipment import EquipmentCreate, EquipmentUpdate


class CRUDEquipment(CRUDBase[Equipment, EquipmentCreate, EquipmentUpdate]):
    """器材 CRUD 操作類

    查詢一律帶 populate_existing，因為可借數量是以 UPDATE 直接遞增，
    不會同步到 session 內已載入的物件
    """

    def _select(self):
        return (
            select(Equipment)
            .options(selectinload(Equipment.images))
            .execution_options(populate_existing=True)
        )

    async def get(self, db: AsyncSession, id: Any) -> Optional[Equipment]:
        result = await db.execute(self._select().where(Equipment.id == id))
        return result.scalars().first()

    async def get_many(self, db: AsyncSession, *, ids: Sequence[Any]) -> List[Equipment]:
        if not ids:
            return []
        result = await db.execute(self._select().where(Equipment.id.in_(list(ids))))
        return list(result.scalars().all())

    async def get_all(self, db: AsyncSession) -> List[Equipment]:
        """獲取所有器材，依名稱排序"""
        result = await db.execute(self._select().order_by(Equipment.name, Equipment.id))
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, *, obj_in: Dict[str, Any]) -> Equipment:
        """創建新器材"""
        db_obj = Equipment(images=[], **obj_in)
        db.add(db_obj)
        await db.commit()
        return await self.get(db, db_obj.id)

    async def replace_fields(
        self, db: AsyncSession, *, equipment_id: str, obj_in: Dict[str, Any]
    ) -> int:
        """覆寫可編輯欄位，不動圖片；回傳符合的筆數"""
        result = await db.execute(
            update(Equipment)
            .where(Equipment.id == equipment_id)
            .values(**obj_in)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount or 0

    async def adjust_available(
        self,
        db: AsyncSession,
        *,
        equipment_id: str,
        delta: int,
        guard: bool = True,
    ) -> bool:
        """
        以單一 UPDATE 原子地增減可借數量

        Args:
            delta: 借出為負數，歸還為正數
            guard: 是否限制結果必須落在 0..quantity 之間

        Returns:
            bool: 是否有資料被更新
        """
        query = update(Equipment).where(Equipment.id == equipment_id)
        if guard:
            if delta < 0:
                query = query.where(Equipment.available >= -delta)
            else:
                query = query.where(Equipment.available + delta <= Equipment.quantity)
        query = query.values(available=Equipment.available + delta).execution_options(
            synchronize_session=False
        )
        result = await db.execute(query)
        await db.commit()
        return result.rowcount == 1

    async def delete_many(self, db: AsyncSession, *, ids: Sequence[str]) -> int:
        """批次刪除器材及其圖片資料，回傳刪除的器材數"""
        ids = list(ids)
        await db.execute(
            delete(EquipmentImage)
            .where(EquipmentImage.equipment_id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(
            delete(Equipment)
            .where(Equipment.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount or 0

    async def get_image(self, db: AsyncSession, *, image_id: str) -> Optional[EquipmentImage]:
        result = await db.execute(select(EquipmentImage).where(EquipmentImage.id == image_id))
        return result.scalars().first()

    async def append_images(
        self,
        db: AsyncSession,
        *,
        equipment_id: str,
        images: List[Dict[str, Any]],
        max_images: Optional[int] = None,
    ) -> Optional[List[EquipmentImage]]:
        """
        一次提交所有新圖片資料

        鎖定器材列後寫入並重新計數；超過 max_images 時回復並回傳 None
        """
        await db.execute(
            select(Equipment.id).where(Equipment.id == equipment_id).with_for_update()
        )
        db_objs = [EquipmentImage(equipment_id=equipment_id, **image) for image in images]
        db.add_all(db_objs)
        await db.flush()

        if max_images is not None:
            count = await db.scalar(
                select(func.count())
                .select_from(EquipmentImage)
                .where(EquipmentImage.equipment_id == equipment_id)
            )
            if count > max_images:
                await db.rollback()
                return None

        await db.commit()
        return db_objs

    async def remove_images(
        self, db: AsyncSession, *, equipment_id: str, image_ids: Sequence[str]
    ) -> int:
        result = await db.execute(
            delete(EquipmentImage)
            .where(
                EquipmentImage.equipment_id == equipment_id,
                EquipmentImage.id.in_(list(image_ids)),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount or 0


equipment = CRUDEquipment(Equipment)
