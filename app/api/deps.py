from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.history import HistoryProjector
from app.services.ledger import EquipmentLedger
from app.services.storage import BlobStore


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


async def get_ledger(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
) -> EquipmentLedger:
    """
    依賴函數：以應用程式持有的儲存與圖片服務建立器材帳本
    """
    settings = request.app.state.settings
    return EquipmentLedger(
        db,
        storage,
        request.app.state.image_pipeline,
        enforce_availability=settings.ENFORCE_AVAILABILITY,
        max_images=settings.MAX_IMAGES_PER_EQUIPMENT,
        max_image_size=settings.MAX_IMAGE_SIZE,
        allowed_image_types=settings.ALLOWED_IMAGE_TYPES,
    )


async def get_history_projector(db: AsyncSession = Depends(get_db)) -> HistoryProjector:
    return HistoryProjector(db)
