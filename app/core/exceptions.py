from typing import Any, Dict, Optional


class LedgerError(Exception):
    """庫存帳本相關錯誤的基礎類"""

    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"success": False, "error": error}


class ValidationError(LedgerError):
    """欄位缺漏、格式錯誤或違反數量規則，不會進行任何寫入"""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class StoreOperationError(LedgerError):
    """資料庫或檔案儲存操作失敗"""

    code = "SERVER_ERROR"
    status_code = 500


class PartialFailure(StoreOperationError):
    """
    多步驟操作在部分步驟已提交後失敗

    借出/歸還不做補償，已套用的庫存變更會保留；
    details["applied"] 列出已完成的器材ID
    """

    code = "PARTIAL_FAILURE"
