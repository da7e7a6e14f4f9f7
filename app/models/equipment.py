import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base, utcnow


class Equipment(Base):
    """器材模型，對應資料庫 equipments 資料表"""
    __tablename__ = "equipments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, index=True)
    location = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    # 未借出的數量，只由編輯或借出/歸還異動
    available = Column(Integer, nullable=False, default=1)
    unique = Column(Boolean, nullable=False, default=False)
    asset_id = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    # 關聯
    images = relationship(
        "EquipmentImage",
        back_populates="equipment",
        order_by="EquipmentImage.order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_equipments_quantity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Equipment {self.name}>"


class EquipmentImage(Base):
    """器材圖片模型，對應資料庫 equipment_images 資料表"""
    __tablename__ = "equipment_images"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    equipment_id = Column(
        String(36), ForeignKey("equipments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename = Column(String(255), nullable=False)
    original_path = Column(String(255), nullable=False)
    thumbnail_path = Column(String(255), nullable=False)
    mime_type = Column(String(50), nullable=False)
    size = Column(Integer, nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)
    order = Column(Integer, nullable=False, default=0)  # 顯示順序

    # 關聯
    equipment = relationship("Equipment", back_populates="images")

    def __repr__(self) -> str:
        return f"<EquipmentImage {self.id} for {self.equipment_id}>"
