from app.models.users import User
from app.models.equipment import Equipment, EquipmentImage
from app.models.transactions import Checkin, Checkout
from app.models.logs import SystemLog

# 為了方便其他模組導入，這裡導出所有模型
__all__ = [
    "User",
    "Equipment",
    "EquipmentImage",
    "Checkout",
    "Checkin",
    "SystemLog",
]
