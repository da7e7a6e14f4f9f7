from fastapi import APIRouter

from app.api import checkin, checkout, equipment, history, images, users

api_router = APIRouter()

# 註冊各模組的路由
api_router.include_router(equipment.router)
api_router.include_router(images.router)  # /equipments/images
api_router.include_router(checkout.router)
api_router.include_router(checkin.router)
api_router.include_router(users.router)
api_router.include_router(history.router)
