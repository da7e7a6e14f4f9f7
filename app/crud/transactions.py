from typing import Any, Dict, List, Type, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.transactions import Checkin, Checkout
from app.schemas.transactions import CheckinCreate, CheckoutCreate


class CRUDTransaction(CRUDBase[Union[Checkout, Checkin], Any, Any]):
    """借出/歸還紀錄 CRUD 操作類，紀錄只新增不修改"""

    def __init__(self, model: Type[Union[Checkout, Checkin]], status: str):
        super().__init__(model)
        self.status = status

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CheckoutCreate, CheckinCreate],
    ) -> Union[Checkout, Checkin]:
        items: List[Dict[str, Any]] = [item.model_dump(exclude_none=True) for item in obj_in.items]
        db_obj = self.model(
            user_id=obj_in.userId,
            project=obj_in.project,
            items=items,
            status=self.status,
        )
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def get_all(self, db: AsyncSession) -> List[Union[Checkout, Checkin]]:
        """獲取所有紀錄，最新的在前"""
        query = select(self.model).order_by(self.model.date.desc(), self.model.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())


checkout = CRUDTransaction(Checkout, status="active")
checkin = CRUDTransaction(Checkin, status="completed")
