import json
from typing import Any, Dict, Optional, Union

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.logs import SystemLog


class LoggingService:
    """
    統一的系統日誌服務
    將操作紀錄寫入 system_logs 資料表
    """

    @staticmethod
    async def log(
        db: AsyncSession,
        level: str,
        component: str,
        message: str,
        details: Optional[Union[Dict[str, Any], str]] = None,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> SystemLog:
        """
        記錄系統日誌

        Args:
            db: 資料庫連接
            level: 日誌級別 (info, warning, error)
            component: 系統組件 (equipment, image, checkout, checkin, user)
            message: 日誌訊息
            details: 詳細資訊 (可選)
            user_id: 使用者ID (可選)
            ip_address: IP地址 (可選)

        Returns:
            SystemLog: 創建的日誌記錄
        """
        # 將詳細資訊轉換為JSON字符串
        if details and isinstance(details, dict):
            details_json = json.dumps(details, default=str, ensure_ascii=False)
        elif details:
            details_json = str(details)
        else:
            details_json = None

        log = SystemLog(
            level=level,
            component=component,
            message=message,
            details=details_json,
            user_id=user_id,
            ip_address=ip_address,
        )

        db.add(log)
        await db.commit()
        return log

    @classmethod
    async def info(
        cls,
        db: AsyncSession,
        component: str,
        message: str,
        details: Optional[Union[Dict[str, Any], str]] = None,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> SystemLog:
        """記錄信息級別日誌"""
        return await cls.log(
            db=db,
            level="info",
            component=component,
            message=message,
            details=details,
            user_id=user_id,
            ip_address=ip_address,
        )

    @classmethod
    async def audit(
        cls,
        db: AsyncSession,
        component: str,
        action: str,
        resource_type: str,
        resource_id: str,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> SystemLog:
        """
        記錄審計日誌（用於記錄操作行為）

        Args:
            db: 資料庫連接
            component: 系統組件
            action: 操作類型 (create, update, delete, checkout, checkin, upload等)
            resource_type: 資源類型 (equipment, image, user等)
            resource_id: 資源ID
            user_id: 操作者ID (可選)
            details: 詳細資訊 (可選)
            ip_address: IP地址 (可選)
        """
        message = f"{action.upper()} {resource_type} {resource_id}"

        audit_details = {
            "action": action,
            "resourceType": resource_type,
            "resourceId": resource_id,
        }

        if details:
            audit_details.update(details)

        return await cls.info(
            db=db,
            component=component,
            message=message,
            details=audit_details,
            user_id=user_id,
            ip_address=ip_address,
        )

    @classmethod
    async def get_request_ip(cls, request: Request) -> Optional[str]:
        """從請求中獲取客戶端IP地址"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else None


# 創建服務實例
logging_service = LoggingService()
