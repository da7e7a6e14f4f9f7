from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    CRUD 操作基礎類，提供通用的增刪改查功能

    每個寫入操作各自提交，不跨多筆資料包成單一交易
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        根據 ID 獲取資料
        """
        query = select(self.model).where(self.model.id == id)
        result = await db.execute(query)
        return result.scalars().first()

    async def get_many(self, db: AsyncSession, *, ids: Sequence[Any]) -> List[ModelType]:
        """
        根據多個 ID 獲取資料，不存在的 ID 直接略過
        """
        if not ids:
            return []
        query = select(self.model).where(self.model.id.in_(list(ids)))
        result = await db.execute(query)
        return list(result.scalars().all())

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        更新資料
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def remove_many(self, db: AsyncSession, *, ids: Sequence[Any]) -> int:
        """
        批次刪除資料，回傳實際刪除筆數
        """
        result = await db.execute(delete(self.model).where(self.model.id.in_(list(ids))))
        await db.commit()
        return result.rowcount or 0
