"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
import os
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./lumina.db"
DEFAULT_JWT_SECRET = "jwt-secret-change-in-production"


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION",
    )

    # Application
    app_name: str = Field(default="Lumina Gallery API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    # 비밀번호 재설정 링크 등 프론트엔드 URL 생성에 사용
    app_url: str = Field(default="http://localhost:5173")
    # 콤마 구분 목록, "*"이면 전체 허용
    cors_origins: str = Field(default="*")

    @model_validator(mode="after")
    def set_debug_from_environment(self):
        """Set debug mode based on environment if DEBUG is not set explicitly."""
        if "DEBUG" not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    # Database (빈 문자열이면 기본값 사용)
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return DEFAULT_DATABASE_URL
        return v

    # JWT
    jwt_secret_key: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)

    # Password reset
    reset_token_expire_minutes: int = Field(default=60)

    # SMTP (비어 있으면 메일 발송 생략)
    mail_host: str = Field(default="")
    mail_port: int = Field(default=587)
    mail_user: str = Field(default="")
    mail_password: str = Field(default="")
    mail_from: str = Field(default="Lumina <no-reply@lumina.local>")
    mail_use_tls: bool = Field(default=True)
    mail_timeout_seconds: float = Field(default=10.0)

    # Cloudinary (비어 있으면 로컬 디스크 저장)
    cloudinary_cloud_name: str = Field(default="")
    cloudinary_api_key: str = Field(default="")
    cloudinary_api_secret: str = Field(default="")
    cloudinary_folder: str = Field(default="lumina")
    cloudinary_api_url: str = Field(default="https://api.cloudinary.com/v1_1")
    # 업로드 결과 URL의 호스트 (이 호스트만 사진 경로로 허용)
    cloudinary_delivery_host: str = Field(default="res.cloudinary.com")

    # Local storage
    upload_dir: str = Field(default="./uploads")
    invoice_pdf_dir: str = Field(default="./invoices")
    max_upload_size_bytes: int = Field(default=10 * 1024 * 1024)
    # 공유 갤러리 미리보기 (긴 변 기준 px)
    preview_max_side: int = Field(default=1200)
    preview_jpeg_quality: int = Field(default=82)
    # ZIP 일괄 다운로드 한도
    max_archive_size_bytes: int = Field(default=500 * 1024 * 1024)

    # Invoices
    invoice_currency: str = Field(default="USD")

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_per_minute: int = Field(default=120)
    rate_limit_auth_per_minute: int = Field(default=10)
    rate_limit_share_per_minute: int = Field(default=60)
    rate_limit_pin_per_minute: int = Field(default=10)

    # Logging
    log_dir: str = Field(default="/var/log/lumina")
    instance_ip: str = Field(default="", description="서버 사설 IP (로그 식별용)")

    @property
    def cloudinary_enabled(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def mail_enabled(self) -> bool:
        return bool(self.mail_host)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid reading the environment on every request.
    """
    return Settings()
