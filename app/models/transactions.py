import uuid

from sqlalchemy import JSON, Column, DateTime, String

from app.database import Base, utcnow


class TransactionMixin:
    """借出/歸還紀錄共用欄位，建立後不再修改"""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    project = Column(String(100), nullable=False)
    # [{"equipmentId": ..., "name": ..., "quantity": ...}]
    items = Column(JSON, nullable=False)
    date = Column(DateTime, nullable=False, default=utcnow, index=True)
    status = Column(String(20), nullable=False)


class Checkout(TransactionMixin, Base):
    """借出紀錄模型，對應資料庫 checkouts 資料表"""
    __tablename__ = "checkouts"

    kind = "checkout"

    def __repr__(self) -> str:
        return f"<Checkout {self.id} by {self.user_id}>"


class Checkin(TransactionMixin, Base):
    """歸還紀錄模型，對應資料庫 checkins 資料表"""
    __tablename__ = "checkins"

    kind = "checkin"

    def __repr__(self) -> str:
        return f"<Checkin {self.id} by {self.user_id}>"
