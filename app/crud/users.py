import uuid
from typing import List, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.users import User
from app.schemas.users import UserCreate, UserUpdate


class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):
    """使用者 CRUD 操作類"""

    async def get_all(self, db: AsyncSession) -> List[User]:
        query = select(User).order_by(User.last_name, User.first_name)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, *, obj_in: UserCreate) -> User:
        """創建使用者，未提供 ID 時自動產生"""
        db_obj = User(
            id=obj_in.id or str(uuid.uuid4()),
            first_name=obj_in.firstName,
            last_name=obj_in.lastName,
            position=obj_in.position,
            email=obj_in.email,
        )
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: User, obj_in: UserUpdate) -> User:
        return await super().update(
            db,
            db_obj=db_obj,
            obj_in={
                "first_name": obj_in.firstName,
                "last_name": obj_in.lastName,
                "position": obj_in.position,
                "email": obj_in.email,
            },
        )

    async def get_name_map(self, db: AsyncSession, *, ids: Sequence[str]) -> dict:
        """根據 ID 批次查詢使用者，回傳 {id: 顯示名稱}"""
        users = await self.get_many(db, ids=list(ids))
        return {u.id: u.display_name for u in users}

    async def exists(self, db: AsyncSession, *, id: str) -> bool:
        return (await self.get(db, id)) is not None


user = CRUDUser(User)
