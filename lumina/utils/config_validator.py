"""
설정 검증 유틸리티.

프로덕션 시작 시 필수 설정을 검증합니다. 실패하면 애플리케이션이 시작되지 않습니다.
"""
import logging
from typing import List, Tuple

from sqlalchemy import text

from lumina.config import DEFAULT_JWT_SECRET, Settings, get_settings
from lumina.database import engine

logger = logging.getLogger("lumina.config_validator")

MIN_JWT_SECRET_LENGTH = 32


def _validate_jwt_config(settings: Settings) -> List[str]:
    errors: List[str] = []
    if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
        errors.append("JWT_SECRET_KEY must be set (default secret in use)")
    elif len(settings.jwt_secret_key) < MIN_JWT_SECRET_LENGTH:
        errors.append(f"JWT_SECRET_KEY must be at least {MIN_JWT_SECRET_LENGTH} characters")
    return errors


def _validate_storage_config(settings: Settings) -> List[str]:
    """Cloudinary는 선택적이지만, 일부만 설정된 경우는 오류."""
    errors: List[str] = []
    values = {
        "CLOUDINARY_CLOUD_NAME": settings.cloudinary_cloud_name,
        "CLOUDINARY_API_KEY": settings.cloudinary_api_key,
        "CLOUDINARY_API_SECRET": settings.cloudinary_api_secret,
    }
    missing = [name for name, value in values.items() if not value]
    if len(missing) == len(values):
        logger.warning(
            "Cloudinary not configured, photos are stored on local disk",
            extra={"event": "config", "upload_dir": settings.upload_dir},
        )
    elif missing:
        errors.append(f"Incomplete Cloudinary configuration, missing: {', '.join(missing)}")
    return errors


def _validate_mail_config(settings: Settings) -> List[str]:
    """메일은 선택적 (미설정 시 재설정 메일 발송 생략)."""
    if not settings.mail_enabled:
        logger.warning("MAIL_HOST not set, password reset emails will not be sent", extra={"event": "config"})
    elif settings.mail_user and not settings.mail_password:
        return ["MAIL_PASSWORD is required when MAIL_USER is set"]
    return []


async def _validate_database() -> List[str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database connection failed", extra={"event": "config"}, exc_info=True)
        return [f"Database connection failed: {e}"]
    return []


async def validate_all_config() -> Tuple[bool, List[str]]:
    """
    Returns:
        (ok, error messages)
    """
    settings = get_settings()
    errors: List[str] = []
    errors.extend(_validate_jwt_config(settings))
    errors.extend(_validate_storage_config(settings))
    errors.extend(_validate_mail_config(settings))
    errors.extend(await _validate_database())

    if errors:
        logger.error("Configuration validation failed", extra={"event": "config", "errors": errors})
    else:
        logger.info("Configuration validation completed successfully", extra={"event": "config"})
    return not errors, errors
