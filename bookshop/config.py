from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://postgres:postgres@db:5432/bookshop"
    REDIS_URL: str = "redis://redis:6379/0"
    AUTO_CREATE_TABLES: bool = True

    JWT_ACCESS_SECRET: str = "change_this_access_secret"
    JWT_REFRESH_SECRET: str = "change_this_refresh_secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    RESET_CODE_EXPIRE_MINUTES: int = 15

    FRONTEND_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT: str = "100/15minutes"
    RATE_LIMIT_ENABLED: bool = True
    MAX_BODY_SIZE: int = 5 * 1024 * 1024

    # Thumbnails: "local" or "supabase"
    STORAGE_BACKEND: str = "local"
    UPLOAD_DIR: str = "./uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_BUCKET: Optional[str] = None

    # Email (Resend)
    RESEND_API_KEY: Optional[str] = None
    RESEND_FROM: Optional[str] = None

    @property
    def allow_origins(self) -> List[str]:
        return [origin.strip() for origin in self.FRONTEND_ORIGINS.split(",") if origin.strip()]

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
