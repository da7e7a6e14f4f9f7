from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_ledger
from app.crud.transactions import checkout as crud_checkout
from app.database import get_db
from app.schemas.transactions import CheckoutCreate, CheckoutResponse, TransactionList
from app.services.ledger import EquipmentLedger
from app.services.logging import logging_service

router = APIRouter(prefix="/checkout", tags=["checkout"])


def transaction_to_dict(record: Any) -> dict:
    return {
        "id": record.id,
        "userId": record.user_id,
        "project": record.project,
        "items": record.items,
        "date": record.date,
        "status": record.status,
    }


@router.post("", response_model=CheckoutResponse)
async def create_checkout(
    request: Request,
    checkout_in: CheckoutCreate,
    ledger: EquipmentLedger = Depends(get_ledger),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    借出器材
    """
    record = await ledger.checkout(checkout_in)

    await logging_service.audit(
        db,
        component="checkout",
        action="checkout",
        resource_type="checkout",
        resource_id=record.id,
        user_id=record.user_id,
        details={"project": record.project, "items": record.items},
        ip_address=await logging_service.get_request_ip(request),
    )

    return {
        "success": True,
        "data": {
            "checkoutId": record.id,
            "status": record.status,
            "date": record.date,
        },
    }


@router.get("", response_model=TransactionList)
async def get_checkouts(db: AsyncSession = Depends(get_db)) -> Any:
    """
    獲取所有借出紀錄，最新的在前
    """
    records = await crud_checkout.get_all(db)
    return {"success": True, "data": [transaction_to_dict(r) for r in records]}
