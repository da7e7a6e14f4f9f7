import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import api_router
from app.config import Settings, settings as default_settings
from app.core.exceptions import LedgerError
from app.database import Database
from app.services.images import ImagePipeline
from app.services.storage import BlobStore

# 設置日誌
logging.basicConfig(
    level=logging.INFO if default_settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """建立 FastAPI 應用程式，資料庫與檔案儲存由 lifespan 管理"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(str(settings.DATABASE_URL), echo=False)
        logger.info("Initializing database...")
        await database.connect()
        await database.create_all()
        logger.info("Database initialized successfully")

        blob_store = BlobStore(settings.UPLOAD_DIR)
        blob_store.ensure_dirs()

        app.state.database = database
        app.state.blob_store = blob_store
        app.state.image_pipeline = ImagePipeline(
            thumbnail_size=settings.THUMBNAIL_SIZE,
            thumbnail_quality=settings.THUMBNAIL_QUALITY,
            original_max_size=settings.ORIGINAL_MAX_SIZE,
            original_quality=settings.ORIGINAL_QUALITY,
        )
        try:
            yield
        finally:
            await database.dispose()
            logger.info("Database connection closed")

    # 創建 FastAPI 應用程式
    app = FastAPI(
        title=settings.APP_NAME,
        description="器材借出/歸還管理系統 API",
        version="1.0.0",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # 設置 CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 請求記錄中間件
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        elapsed_ms = int((time.time() - start) * 1000)
        logger.info(
            "method=%s path=%s status=%s elapsed_ms=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    # 異常處理中間件
    @app.middleware("http")
    async def exception_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": {
                        "code": "SERVER_ERROR",
                        "message": "服務器內部錯誤",
                    }
                }
            )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        issues = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "issue": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "缺少必要欄位或欄位格式錯誤",
                    "details": issues,
                },
            },
        )

    # 健康檢查路由
    @app.get(f"{settings.API_PREFIX}/health")
    async def health_check(request: Request):
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            await request.app.state.database.ping()
        except Exception as e:
            logger.error(f"Health check failed: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "timestamp": timestamp,
                    "database": "disconnected",
                    "error": str(e),
                },
            )
        return {
            "status": "healthy",
            "timestamp": timestamp,
            "database": "connected",
            "environment": settings.APP_ENV,
            "version": "1.0.0",
        }

    # 註冊路由
    app.include_router(api_router, prefix=settings.API_PREFIX)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting application on {default_settings.HOST}:{default_settings.PORT}")
    uvicorn.run(
        "app.main:app",
        host=default_settings.HOST,
        port=int(default_settings.PORT),
        reload=default_settings.DEBUG,
        log_level="info" if default_settings.DEBUG else "warning",
    )
