from typing import List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True
    )

    # 應用設定
    APP_NAME: str = "Equipment_Ledger"
    APP_ENV: str = "development"
    DEBUG: bool = True
    API_PREFIX: str = "/api"

    # 伺服器設定
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 資料庫設定
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "inventory"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> str:
        if isinstance(v, str) and v:
            return v
        values = info.data
        return (
            f"postgresql+asyncpg://{values.get('POSTGRES_USER')}:{values.get('POSTGRES_PASSWORD')}"
            f"@{values.get('POSTGRES_HOST')}:{values.get('POSTGRES_PORT')}/{values.get('POSTGRES_DB') or ''}"
        )

    # CORS 設定
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # 圖片儲存設定
    UPLOAD_DIR: str = "uploads/equipment-images"
    MAX_IMAGES_PER_EQUIPMENT: int = 5
    MAX_IMAGE_SIZE: int = 10 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]
    THUMBNAIL_SIZE: int = 300
    THUMBNAIL_QUALITY: int = 80
    ORIGINAL_MAX_SIZE: int = 2000
    ORIGINAL_QUALITY: int = 90
    IMAGE_CACHE_MAX_AGE: int = 31536000

    # 庫存規則：是否在伺服器端檢查借出/歸還數量
    ENFORCE_AVAILABILITY: bool = True


settings = Settings()
