import uuid

from sqlalchemy import Column, DateTime, String, Text

from app.database import Base, utcnow


class SystemLog(Base):
    """系統日誌模型，對應資料庫 system_logs 資料表"""
    __tablename__ = "system_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    level = Column(String(10), nullable=False, index=True)  # info, warning, error
    component = Column(String(20), nullable=False, index=True)  # equipment, image, checkout, checkin, user
    message = Column(Text, nullable=False)
    details = Column(Text, nullable=True)  # JSON格式
    # 借出人不一定存在於 users，故不設外鍵
    user_id = Column(String(36), nullable=True, index=True)
    ip_address = Column(String(45), nullable=True)

    def __repr__(self) -> str:
        return f"<SystemLog {self.id} {self.level}>"
