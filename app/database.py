from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# 宣告基礎模型
Base = declarative_base()


def utcnow() -> datetime:
    """目前的 UTC 時間，以 naive datetime 存入資料庫"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Database:
    """
    資料庫連線持有者

    由應用程式入口建立，於 lifespan 中連線與釋放，
    並掛在 app.state.database 上供依賴函數使用
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def connect(self) -> None:
        """建立異步引擎與會話工廠"""
        self.engine = create_async_engine(self.url, echo=self.echo, future=True)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

    async def create_all(self) -> None:
        """
        初始化資料庫，建立所有資料表
        """
        # 確保所有模型都已註冊到 metadata
        import app.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        """執行簡單查詢以確認連線正常，失敗時直接拋出例外"""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    依賴函數，用於FastAPI端點獲取異步資料庫會話
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
