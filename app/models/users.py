import uuid

from sqlalchemy import Column, DateTime, String

from app.database import Base, utcnow


class User(Base):
    """使用者模型，對應資料庫 users 資料表"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    position = Column(String(50), nullable=True)
    email = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.display_name}>"
