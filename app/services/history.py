from datetime import datetime, timezone
from typing import Any, Dict, List, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.transactions import checkin as crud_checkin
from app.crud.transactions import checkout as crud_checkout
from app.crud.users import user as crud_user
from app.models.transactions import Checkin, Checkout

UNKNOWN_USER = "Unknown User"

ACTIVITY_LABELS = {
    "checkout": "Check-Out",
    "checkin": "Check-In",
}


def _timestamp_ms(value: datetime) -> int:
    # 資料庫存放的是 UTC naive 時間
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _display_date(value: datetime) -> str:
    return value.strftime("%d %b %Y")


class HistoryProjector:
    """
    借還歷史服務
    合併借出與歸還紀錄，展開為每項器材一列的活動紀錄
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_history(self) -> List[Dict[str, Any]]:
        """
        獲取完整借還歷史

        依紀錄時間由新到舊排序；時間相同時依紀錄ID由大到小，
        同一筆紀錄內的器材保持原本順序

        Returns:
            List[Dict[str, Any]]: 歷史列表
        """
        checkouts = await crud_checkout.get_all(self.db)
        checkins = await crud_checkin.get_all(self.db)

        user_ids = {t.user_id for t in checkouts} | {t.user_id for t in checkins}
        names = await crud_user.get_name_map(self.db, ids=sorted(user_ids))

        rows = []
        for transaction in [*checkouts, *checkins]:
            rows.extend(self._expand(transaction, names.get(transaction.user_id, UNKNOWN_USER)))

        # sort 為穩定排序，reverse 也不會打亂同鍵值的原始順序
        rows.sort(key=lambda row: (row["timestamp"], row["_transactionId"]), reverse=True)
        for row in rows:
            del row["_transactionId"]
        return rows

    @staticmethod
    def _expand(transaction: Union[Checkout, Checkin], user_name: str) -> List[Dict[str, Any]]:
        kind = transaction.kind
        timestamp = _timestamp_ms(transaction.date)
        rows = []
        seen: Dict[str, int] = {}
        for item in transaction.items or []:
            row_id = f"{kind}-{transaction.id}-{item.get('equipmentId')}"
            # 同一筆紀錄重複列出的器材，第二次起加上序號
            seen[row_id] = seen.get(row_id, 0) + 1
            if seen[row_id] > 1:
                row_id = f"{row_id}-{seen[row_id]}"
            rows.append({
                "id": row_id,
                "product": item.get("name"),
                "project": transaction.project,
                "quantity": item.get("quantity"),
                "activity": ACTIVITY_LABELS[kind],
                "date": _display_date(transaction.date),
                "by": user_name,
                f"{kind}Id": transaction.id,
                "timestamp": timestamp,
                "_transactionId": transaction.id,
            })
        return rows
