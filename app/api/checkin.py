from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.checkout import transaction_to_dict
from app.api.deps import get_ledger
from app.crud.transactions import checkin as crud_checkin
from app.database import get_db
from app.schemas.transactions import CheckinCreate, CheckinResponse, TransactionList
from app.services.ledger import EquipmentLedger
from app.services.logging import logging_service

router = APIRouter(prefix="/checkin", tags=["checkin"])


@router.post("", response_model=CheckinResponse)
async def create_checkin(
    request: Request,
    checkin_in: CheckinCreate,
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    歸還器材
    """
    record = await ledger.checkin(checkin_in)

    await logging_service.audit(
        db,
        component="checkin",
        action="checkin",
        resource_type="checkin",
        resource_id=record.id,
        user_id=record.user_id,
        details={"project": record.project, "items": record.items},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {
        "success": True,
        "data": {
            "checkinId": record.id,
            "status": record.status,
            "date": record.date,
        },
    }


@router.get("", response_model=TransactionList)
async def get_checkins(db: AsyncSession = Depends(get_db)) -> Any:
    """
    獲取所有歸還紀錄，最新的在前
    """
    records = await crud_checkin.get_all(db)
    return {"success": True, "data": [transaction_to_dict(r) for r in records]}
